"""
R峰检测模块
===========

Pan-Tompkins风格的QRS检测，全部使用因果单极点滤波，
适合在腕部设备上逐窗口运行

数学原理:
---------
Pan-Tompkins算法流程:
1. 带通滤波 (5-15Hz): 单极点低通(15Hz) -> 单极点高通(5Hz)
2. 五点微分: y'[n] = (fs/8)(2y[n+1] + y[n+2] - 2y[n-1] - y[n-2])
3. 平方运算: y''[n] = (y'[n])^2
4. 移动窗口积分: y'''[n] = (1/N)∑y''[n-k]  (N = 150ms)
5. 自适应阈值检测:
   THR_0 = 0.4 · max(y''')
   每接受一个峰: THR = 0.9 · THR + 0.1 · y'''[peak]
   两峰间距必须大于不应期 (200ms)
"""

import numpy as np
from typing import Tuple, Optional
from loguru import logger

from .baseline_correction import one_pole_bandpass


class RPeakDetector:
    """
    R峰检测器

    Attributes:
        sampling_rate: 采样率 (Hz)
        bandpass: QRS通带 (low, high) Hz
        integration_window: 移动积分窗口 (秒)
        refractory_period: 不应期 (秒)
        initial_threshold_ratio: 初始阈值占包络最大值的比例
        threshold_decay: 阈值更新时旧值的权重
    """

    MIN_SIGNAL_LENGTH = 5

    def __init__(
        self,
        sampling_rate: float = 250.0,
        bandpass: Tuple[float, float] = (5.0, 15.0),
        integration_window: float = 0.150,
        refractory_period: float = 0.200,
        initial_threshold_ratio: float = 0.4,
        threshold_decay: float = 0.9
    ):
        """
        初始化R峰检测器

        Args:
            sampling_rate: 采样率
            bandpass: 带通范围 (Hz)
            integration_window: 积分窗口 (秒)
            refractory_period: 不应期 (秒)
            initial_threshold_ratio: 初始阈值比例
            threshold_decay: 阈值平滑系数
        """
        if not 0 < threshold_decay < 1:
            raise ValueError(f"threshold_decay 必须在(0, 1)内: {threshold_decay}")

        self.sampling_rate = sampling_rate
        self.bandpass = bandpass
        self.integration_window = integration_window
        self.refractory_period = refractory_period
        self.initial_threshold_ratio = initial_threshold_ratio
        self.threshold_decay = threshold_decay

        logger.debug(f"初始化R峰检测器: fs={sampling_rate}Hz, band={bandpass}, "
                    f"refractory={refractory_period}s")

    @property
    def refractory_samples(self) -> int:
        """不应期对应的采样点数"""
        return int(self.refractory_period * self.sampling_rate)

    def detect(
        self,
        ecg_signal: np.ndarray,
        return_features: bool = False
    ) -> Tuple[np.ndarray, Optional[dict]]:
        """
        检测R峰位置

        Args:
            ecg_signal: 波形信号 (已去基线)
            return_features: 是否返回中间处理结果

        Returns:
            r_peaks: R峰索引数组
            features: 中间结果 (可选)
        """
        ecg_signal = np.asarray(ecg_signal, dtype=np.float64)

        if len(ecg_signal) < self.MIN_SIGNAL_LENGTH:
            logger.warning(f"信号过短 ({len(ecg_signal)} 点)，无法检测R峰")
            empty = np.array([], dtype=np.int64)
            return empty, ({'r_peaks': empty, 'heart_rate': 0.0} if return_features else None)

        r_peaks, features = self._pan_tompkins(ecg_signal)

        logger.debug(f"检测到 {len(r_peaks)} 个R峰, "
                    f"平均心率: {self._calculate_hr(r_peaks):.1f} BPM")

        if return_features:
            features['r_peaks'] = r_peaks
            features['heart_rate'] = self._calculate_hr(r_peaks)
            return r_peaks, features

        return r_peaks, None

    def _pan_tompkins(
        self,
        ecg_signal: np.ndarray
    ) -> Tuple[np.ndarray, dict]:
        """
        Pan-Tompkins算法

        Reference: Pan & Tompkins, IEEE TBME, 1985

        Args:
            ecg_signal: 输入信号

        Returns:
            R峰位置和特征字典
        """
        fs = self.sampling_rate
        low, high = self.bandpass

        # Step 1: 带通滤波
        filtered = one_pole_bandpass(ecg_signal, fs, low, high)

        # Step 2: 五点微分
        differentiated = self.derivative(filtered, fs)

        # Step 3: 平方
        squared = differentiated ** 2

        # Step 4: 移动窗口积分
        window_size = max(int(self.integration_window * fs), 1)
        integrated = self.moving_average(squared, window_size)

        # Step 5: 自适应阈值检测
        r_peaks = self.adaptive_peaks(integrated)

        features = {
            'filtered': filtered,
            'differentiated': differentiated,
            'squared': squared,
            'integrated': integrated
        }

        return r_peaks, features

    @staticmethod
    def derivative(x: np.ndarray, sampling_rate: float) -> np.ndarray:
        """
        五点微分

        首尾各两个点无法计算，保持为0；长度不足5时原样返回
        """
        x = np.asarray(x, dtype=np.float64)
        n = len(x)
        if n < 5:
            return x.copy()

        y = np.zeros(n)
        y[2:n - 2] = (2 * x[3:n - 1] + x[4:n] - 2 * x[1:n - 3] - x[0:n - 4]) * sampling_rate / 8.0
        return y

    @staticmethod
    def moving_average(x: np.ndarray, window: int) -> np.ndarray:
        """
        因果移动平均

        前 window-1 个点按已有样本数求平均
        """
        x = np.asarray(x, dtype=np.float64)
        if window <= 1 or len(x) == 0:
            return x.copy()

        cumsum = np.cumsum(x)
        sums = cumsum.copy()
        sums[window:] = cumsum[window:] - cumsum[:-window]
        counts = np.minimum(np.arange(1, len(x) + 1), window)
        return sums / counts

    def adaptive_peaks(self, envelope: np.ndarray) -> np.ndarray:
        """
        自适应阈值峰值检测

        峰值需同时满足:
        - 严格局部最大值
        - 大于当前阈值
        - 与上一个接受的峰间距大于不应期

        Args:
            envelope: 积分包络

        Returns:
            峰值索引
        """
        envelope = np.asarray(envelope, dtype=np.float64)
        n = len(envelope)
        if n < 3:
            return np.array([], dtype=np.int64)

        threshold = float(np.max(envelope)) * self.initial_threshold_ratio
        refractory = self.refractory_samples
        last = -refractory

        # 候选点: 严格局部最大值
        interior = envelope[1:-1]
        is_local_max = (interior > envelope[:-2]) & (interior > envelope[2:])
        candidates = np.flatnonzero(is_local_max) + 1

        peaks = []
        decay = self.threshold_decay
        for i in candidates:
            value = envelope[i]
            if value > threshold and (i - last) > refractory:
                peaks.append(i)
                last = i
                threshold = decay * threshold + (1.0 - decay) * value

        return np.asarray(peaks, dtype=np.int64)

    def _calculate_hr(self, r_peaks: np.ndarray) -> float:
        """
        计算平均心率

        Args:
            r_peaks: R峰位置

        Returns:
            平均心率 (BPM)
        """
        if len(r_peaks) < 2:
            return 0.0

        rr_intervals = np.diff(r_peaks) / self.sampling_rate  # 秒
        mean_rr = np.mean(rr_intervals)

        if mean_rr > 0:
            return float(60.0 / mean_rr)
        return 0.0
