"""
信号预处理管道
==============

整合所有预处理步骤的统一接口
实现 原始波形 -> 心拍 的端到端处理流程
"""

import numpy as np
from typing import Tuple, List, Optional
from dataclasses import dataclass, field
from loguru import logger

from .wavelet_denoising import WaveletDenoiser
from .baseline_correction import BaselineCorrector
from .rpeak_detection import RPeakDetector
from .beat_segmentation import BeatSegmenter


@dataclass
class PreprocessingConfig:
    """预处理配置"""

    # 采样率
    sampling_rate: float = 250.0

    # 小波去噪 (可选)
    enable_denoising: bool = False
    wavelet: str = 'db4'
    wavelet_mode: str = 'soft'

    # 基线校正参数
    baseline_method: str = 'highpass'
    baseline_cutoff: float = 0.5

    # R峰检测参数
    qrs_band: Tuple[float, float] = (5.0, 15.0)
    integration_window: float = 0.150  # 秒
    refractory_period: float = 0.200  # 秒
    initial_threshold_ratio: float = 0.4
    threshold_decay: float = 0.9

    # 心拍分割参数
    beat_pre_r: float = 0.2  # R峰前 (秒)
    beat_post_r: float = 0.4  # R峰后 (秒)
    beat_target_length: int = 256  # 归一化长度

    # 质量控制参数
    min_signal_length: int = 5
    min_peaks: int = 2
    filter_abnormal_beats: bool = False
    abnormal_threshold: float = 2.0


@dataclass
class PreprocessingResult:
    """预处理结果"""

    raw_signal: np.ndarray = field(default_factory=lambda: np.array([]))

    # 处理后信号
    denoised_signal: np.ndarray = field(default_factory=lambda: np.array([]))
    baseline_corrected: np.ndarray = field(default_factory=lambda: np.array([]))
    filtered_signal: np.ndarray = field(default_factory=lambda: np.array([]))
    envelope: np.ndarray = field(default_factory=lambda: np.array([]))

    # R峰检测结果
    r_peaks: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.int64))
    rr_intervals: np.ndarray = field(default_factory=lambda: np.array([]))

    # 心拍数据
    beats: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    beat_info: List[dict] = field(default_factory=list)

    # 质量指标
    signal_quality: float = 0.0
    heart_rate: float = 0.0

    # 失败原因 (成功时为None)
    failure_reason: Optional[str] = None

    def is_valid(self) -> bool:
        """检查结果是否有效"""
        return len(self.beats) > 0 and len(self.r_peaks) > 1

    @property
    def n_beats(self) -> int:
        return len(self.beats)


class SignalPreprocessor:
    """
    信号预处理器

    集成小波去噪(可选)、基线校正、R峰检测和心拍分割
    数据不足时返回空心拍集合而不是抛出异常

    Usage:
        preprocessor = SignalPreprocessor(config)
        result = preprocessor.process(waveform)
    """

    def __init__(self, config: Optional[PreprocessingConfig] = None):
        """
        初始化预处理器

        Args:
            config: 预处理配置 (默认使用默认配置)
        """
        self.config = config if config else PreprocessingConfig()
        fs = self.config.sampling_rate

        self.denoiser = WaveletDenoiser(
            wavelet=self.config.wavelet,
            threshold_mode=self.config.wavelet_mode
        ) if self.config.enable_denoising else None

        self.baseline_corrector = BaselineCorrector(
            method=self.config.baseline_method,
            sampling_rate=fs,
            cutoff=self.config.baseline_cutoff
        )

        self.rpeak_detector = RPeakDetector(
            sampling_rate=fs,
            bandpass=self.config.qrs_band,
            integration_window=self.config.integration_window,
            refractory_period=self.config.refractory_period,
            initial_threshold_ratio=self.config.initial_threshold_ratio,
            threshold_decay=self.config.threshold_decay
        )

        self.beat_segmenter = BeatSegmenter(
            sampling_rate=fs,
            pre_r=self.config.beat_pre_r,
            post_r=self.config.beat_post_r,
            target_length=self.config.beat_target_length
        )

        logger.info(f"信号预处理器初始化完成: fs={fs}Hz, "
                   f"baseline={self.config.baseline_method}, "
                   f"denoise={self.config.enable_denoising}")

    def process(self, waveform: np.ndarray) -> PreprocessingResult:
        """
        执行完整的预处理流程

        处理步骤:
        1. 小波去噪 (可选)
        2. 基线校正
        3. R峰检测 (带通 -> 微分 -> 平方 -> 积分 -> 自适应阈值)
        4. 心拍分割 (z-score + 线性重采样)
        5. 异常心拍过滤 (可选)

        Args:
            waveform: 输入波形

        Returns:
            PreprocessingResult对象
        """
        result = PreprocessingResult()
        result.raw_signal = np.asarray(waveform, dtype=np.float64).ravel()
        result.beats = np.empty((0, self.config.beat_target_length))

        if len(result.raw_signal) < self.config.min_signal_length:
            result.failure_reason = (f"信号长度不足: {len(result.raw_signal)} < "
                                     f"{self.config.min_signal_length}")
            logger.warning(result.failure_reason)
            return result

        if not np.all(np.isfinite(result.raw_signal)):
            result.failure_reason = "信号包含NaN或Inf"
            logger.warning(result.failure_reason)
            return result

        # Step 1: 小波去噪
        if self.denoiser is not None:
            logger.debug("Step 1: 小波去噪")
            denoised, _ = self.denoiser.denoise(result.raw_signal)
        else:
            denoised = result.raw_signal
        result.denoised_signal = denoised

        # Step 2: 基线校正
        logger.debug("Step 2: 基线校正")
        baseline_corrected, _ = self.baseline_corrector.correct(denoised)
        result.baseline_corrected = baseline_corrected

        # Step 3: R峰检测
        logger.debug("Step 3: R峰检测")
        r_peaks, features = self.rpeak_detector.detect(baseline_corrected, return_features=True)
        result.r_peaks = r_peaks
        result.filtered_signal = features.get('filtered', baseline_corrected)
        result.envelope = features.get('integrated', np.array([]))

        if len(r_peaks) < self.config.min_peaks:
            result.failure_reason = f"R峰数量不足: {len(r_peaks)} < {self.config.min_peaks}"
            logger.warning(result.failure_reason)
            return result

        result.rr_intervals = np.diff(r_peaks) / self.config.sampling_rate * 1000  # ms
        result.heart_rate = float(60000 / np.mean(result.rr_intervals))

        # Step 4: 心拍分割 (在QRS带通信号上)
        logger.debug("Step 4: 心拍分割")
        beats, beat_info = self.beat_segmenter.segment(result.filtered_signal, r_peaks)
        result.beats = beats
        result.beat_info = beat_info

        # Step 5: 异常心拍过滤
        if self.config.filter_abnormal_beats and len(beats) > 0:
            logger.debug("Step 5: 异常心拍过滤")
            result.beats, result.beat_info = self.beat_segmenter.filter_abnormal_beats(
                beats, beat_info, threshold=self.config.abnormal_threshold
            )

        if len(result.beats) == 0:
            result.failure_reason = "没有完整落在信号范围内的心拍"
            logger.warning(result.failure_reason)
            return result

        result.signal_quality = self._assess_signal_quality(result)

        logger.info(f"预处理完成: {len(result.beats)} 个有效心拍, "
                   f"心率 {result.heart_rate:.1f} BPM, "
                   f"质量评分 {result.signal_quality:.2f}")

        return result

    def _assess_signal_quality(self, result: PreprocessingResult) -> float:
        """
        评估信号质量

        基于:
        1. RR间期规律性 (变异系数)
        2. 心拍形态一致性 (与平均心拍的相关系数)

        Args:
            result: 预处理结果

        Returns:
            质量评分 (0-1)
        """
        scores = []

        if len(result.rr_intervals) > 1:
            cv = np.std(result.rr_intervals) / np.mean(result.rr_intervals)
            scores.append(max(0.0, 1 - cv * 2))  # CV < 0.5 视为良好

        if len(result.beats) > 1:
            mean_beat = np.mean(result.beats, axis=0)
            if np.std(mean_beat) > 1e-12:
                correlations = [
                    np.corrcoef(beat, mean_beat)[0, 1]
                    for beat in result.beats if np.std(beat) > 1e-12
                ]
                if correlations:
                    scores.append(max(0.0, float(np.mean(correlations))))

        return float(np.mean(scores)) if scores else 0.0
