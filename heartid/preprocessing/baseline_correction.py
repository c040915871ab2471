"""
基线漂移校正模块
================

实现单极点IIR滤波器及基线漂移去除算法:
1. 单极点高通滤波 (One-pole High-pass, 默认)
2. 形态学滤波 (Morphological Filtering)
3. 小波分解法 (Wavelet-based)

数学原理:
---------
单极点RC滤波器:
    rc = 1 / (2π·fc),  dt = 1 / fs,  α = dt / (rc + dt)

    低通: y[n] = y[n-1] + α·(x[n] - y[n-1])
    高通: y[n] = (1-α)·(y[n-1] + x[n] - x[n-1])

基线漂移主要由呼吸运动、手腕运动等低频成分引起
频率通常在0.05-0.5Hz范围内
"""

import numpy as np
from scipy import signal, ndimage
from typing import Tuple, Optional
import pywt
from loguru import logger


def rc_alpha(sampling_rate: float, cutoff: float) -> float:
    """
    计算单极点滤波器系数 α = dt / (rc + dt)

    Args:
        sampling_rate: 采样率 (Hz)
        cutoff: 截止频率 (Hz)

    Returns:
        滤波系数 α ∈ (0, 1)
    """
    if sampling_rate <= 0 or cutoff <= 0:
        raise ValueError(f"采样率和截止频率必须为正: fs={sampling_rate}, fc={cutoff}")
    rc = 1.0 / (2.0 * np.pi * cutoff)
    dt = 1.0 / sampling_rate
    return dt / (rc + dt)


def one_pole_lowpass(x: np.ndarray, sampling_rate: float, cutoff: float) -> np.ndarray:
    """单极点低通滤波 (状态从0开始)"""
    x = np.asarray(x, dtype=np.float64)
    if len(x) == 0:
        return x.copy()
    alpha = rc_alpha(sampling_rate, cutoff)
    # y[n] = α·x[n] + (1-α)·y[n-1]
    return signal.lfilter([alpha], [1.0, alpha - 1.0], x)


def one_pole_highpass(x: np.ndarray, sampling_rate: float, cutoff: float) -> np.ndarray:
    """单极点高通滤波 (首个输出为0)"""
    x = np.asarray(x, dtype=np.float64)
    if len(x) == 0:
        return x.copy()
    a = 1.0 - rc_alpha(sampling_rate, cutoff)
    # 以首个样本为参考，保证 y[0] = 0
    return signal.lfilter([a, -a], [1.0, -a], x - x[0])


def one_pole_bandpass(
    x: np.ndarray,
    sampling_rate: float,
    low: float,
    high: float
) -> np.ndarray:
    """
    单极点带通级联: 先低通(high)后高通(low)

    Args:
        x: 输入信号
        sampling_rate: 采样率
        low: 通带下限 (Hz)
        high: 通带上限 (Hz)

    Returns:
        带通滤波后的信号
    """
    if low >= high:
        raise ValueError(f"带通下限必须小于上限: low={low}, high={high}")
    lp = one_pole_lowpass(x, sampling_rate, high)
    return one_pole_highpass(lp, sampling_rate, low)


class BaselineCorrector:
    """
    基线漂移校正器

    支持多种校正方法，默认使用单极点高通滤波

    Attributes:
        method: 校正方法
        sampling_rate: 采样率 (Hz)
        cutoff: 高通截止频率 (Hz)
    """

    METHODS = ['highpass', 'morphological', 'wavelet']

    def __init__(
        self,
        method: str = 'highpass',
        sampling_rate: float = 250.0,
        cutoff: float = 0.5
    ):
        """
        初始化基线校正器

        Args:
            method: 校正方法 ('highpass', 'morphological', 'wavelet')
            sampling_rate: 采样率
            cutoff: 高通截止频率
        """
        if method not in self.METHODS:
            raise ValueError(f"不支持的方法: {method}. 可选: {self.METHODS}")

        self.method = method
        self.sampling_rate = sampling_rate
        self.cutoff = cutoff

        logger.debug(f"初始化基线校正器: method={method}, fs={sampling_rate}Hz")

    def correct(
        self,
        signal_data: np.ndarray,
        return_baseline: bool = False
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        执行基线校正

        Args:
            signal_data: 输入信号
            return_baseline: 是否返回估计的基线

        Returns:
            corrected_signal: 校正后的信号
            baseline: 估计的基线 (可选)
        """
        signal_data = np.asarray(signal_data, dtype=np.float64)

        method_map = {
            'highpass': self._highpass_correction,
            'morphological': self._morphological_correction,
            'wavelet': self._wavelet_correction
        }

        corrector = method_map[self.method]
        corrected, baseline = corrector(signal_data)

        if return_baseline:
            return corrected, baseline
        return corrected, None

    def _highpass_correction(
        self,
        signal_data: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        单极点高通滤波基线校正

        因果滤波，适合逐样本到达的腕部传感器数据

        Args:
            signal_data: 输入信号

        Returns:
            校正后信号和基线
        """
        corrected = one_pole_highpass(signal_data, self.sampling_rate, self.cutoff)

        # 基线 = 原信号 - 高通信号
        baseline = signal_data - corrected

        return corrected, baseline

    def _morphological_correction(
        self,
        signal_data: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        形态学滤波基线校正

        使用开运算和闭运算的组合来估计基线
        结构元素长度应覆盖QRS波群但小于T波周期

        Args:
            signal_data: 输入信号

        Returns:
            校正后信号和基线
        """
        # 结构元素长度: 约200ms (覆盖QRS波群)
        se_length = max(int(0.2 * self.sampling_rate), 1)
        if se_length % 2 == 0:
            se_length += 1  # 确保为奇数

        # 闭运算 -> 开运算
        closed = ndimage.grey_closing(signal_data, size=se_length)
        baseline = ndimage.grey_opening(closed, size=se_length)

        baseline = ndimage.uniform_filter1d(baseline, size=max(se_length // 2, 1))

        corrected = signal_data - baseline

        logger.debug(f"形态学校正: se_length={se_length}, "
                    f"baseline_range=[{baseline.min():.2f}, {baseline.max():.2f}]")

        return corrected, baseline

    def _wavelet_correction(
        self,
        signal_data: np.ndarray,
        wavelet: str = 'db4',
        level: int = 9
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        小波分解基线校正

        将信号分解到高层近似系数，该系数代表低频基线成分

        Args:
            signal_data: 输入信号
            wavelet: 小波基
            level: 分解层数

        Returns:
            校正后信号和基线
        """
        max_level = pywt.dwt_max_level(len(signal_data), pywt.Wavelet(wavelet).dec_len)
        level = min(level, max_level)

        if level < 1:
            # 信号过短，退化为高通滤波
            return self._highpass_correction(signal_data)

        coeffs = pywt.wavedec(signal_data, wavelet, level=level)

        # 仅保留近似系数重构基线
        baseline_coeffs = [coeffs[0]] + [np.zeros_like(c) for c in coeffs[1:]]
        baseline = pywt.waverec(baseline_coeffs, wavelet)[:len(signal_data)]

        corrected = signal_data - baseline

        return corrected, baseline
