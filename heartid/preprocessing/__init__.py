"""
信号预处理模块
=============

包含:
- 单极点IIR滤波与基线漂移校正 (Baseline Wander Removal)
- 小波去噪 (Wavelet Denoising, 可选)
- R峰检测 (Pan-Tompkins R-peak Detection)
- 心拍分割 (Beat Segmentation)
"""

from .wavelet_denoising import WaveletDenoiser
from .baseline_correction import (
    BaselineCorrector,
    one_pole_lowpass,
    one_pole_highpass,
    one_pole_bandpass
)
from .rpeak_detection import RPeakDetector
from .beat_segmentation import BeatSegmenter
from .signal_pipeline import SignalPreprocessor, PreprocessingConfig, PreprocessingResult

__all__ = [
    'WaveletDenoiser',
    'BaselineCorrector',
    'one_pole_lowpass',
    'one_pole_highpass',
    'one_pole_bandpass',
    'RPeakDetector',
    'BeatSegmenter',
    'SignalPreprocessor',
    'PreprocessingConfig',
    'PreprocessingResult'
]
