"""
小波变换去噪模块
================

基于离散小波变换(DWT)的可选去噪步骤
腕部PPG/ECG波形在高通滤波前可先去除高频噪声

数学原理:
---------
1. 阈值处理: 对细节系数 d_j,k 应用软/硬阈值
   - 软阈值: d'_j,k = sign(d_j,k) · max(|d_j,k| - λ, 0)
   - 硬阈值: d'_j,k = d_j,k · I(|d_j,k| > λ)

2. Universal阈值: λ = σ · √(2·log(N))
   其中 σ = MAD(d_1) / 0.6745
"""

import numpy as np
import pywt
from typing import Tuple, Optional
from loguru import logger


class WaveletDenoiser:
    """
    基于小波变换的信号去噪器

    Attributes:
        wavelet: 小波基函数名称
        level: 分解层数 (None表示自动计算)
        threshold_mode: 阈值模式 ('soft' 或 'hard')
    """

    def __init__(
        self,
        wavelet: str = 'db4',
        level: Optional[int] = None,
        threshold_mode: str = 'soft'
    ):
        """
        初始化小波去噪器

        Args:
            wavelet: 小波基函数
            level: 分解层数
            threshold_mode: 'soft'(软阈值) 或 'hard'(硬阈值)
        """
        if wavelet not in pywt.wavelist():
            raise ValueError(f"不支持的小波基: {wavelet}")
        if threshold_mode not in ['soft', 'hard']:
            raise ValueError("threshold_mode 必须是 'soft' 或 'hard'")

        self.wavelet = wavelet
        self.level = level
        self.threshold_mode = threshold_mode

        logger.debug(f"初始化小波去噪器: wavelet={wavelet}, mode={threshold_mode}")

    def _calculate_optimal_level(self, signal_length: int) -> int:
        """
        计算分解层数

        上限为4层，腕部采样率较低时更深的分解会吞掉QRS能量
        """
        wavelet_obj = pywt.Wavelet(self.wavelet)
        max_level = pywt.dwt_max_level(signal_length, wavelet_obj.dec_len)
        return min(max_level, 4)

    def _estimate_noise_sigma(self, detail_coeffs: np.ndarray) -> float:
        """
        使用中位数绝对偏差(MAD)估计噪声标准差

        σ = MAD(d) / 0.6745
        """
        mad = np.median(np.abs(detail_coeffs - np.median(detail_coeffs)))
        sigma = mad / 0.6745
        return max(sigma, 1e-10)  # 防止除零

    def denoise(
        self,
        signal: np.ndarray,
        return_details: bool = False
    ) -> Tuple[np.ndarray, Optional[dict]]:
        """
        执行小波去噪

        Args:
            signal: 输入信号 (1D numpy数组)
            return_details: 是否返回分解细节

        Returns:
            denoised_signal: 去噪后的信号
            details: 分解细节字典 (可选)
        """
        signal = np.asarray(signal, dtype=np.float64)
        n_samples = len(signal)

        level = self.level if self.level else self._calculate_optimal_level(n_samples)

        if level < 1:
            logger.debug(f"信号过短 ({n_samples} 点)，跳过小波去噪")
            return signal.copy(), ({'level': 0, 'snr_improvement': 0.0} if return_details else None)

        # coeffs = [cA_n, cD_n, cD_{n-1}, ..., cD_1]
        coeffs = pywt.wavedec(signal, self.wavelet, level=level)

        sigma = self._estimate_noise_sigma(coeffs[-1])
        threshold = sigma * np.sqrt(2 * np.log(n_samples))

        denoised_coeffs = [coeffs[0]] + [
            pywt.threshold(detail, threshold, mode=self.threshold_mode)
            for detail in coeffs[1:]
        ]

        denoised_signal = pywt.waverec(denoised_coeffs, self.wavelet)[:n_samples]

        logger.debug(f"小波去噪: level={level}, σ={sigma:.4f}, λ={threshold:.4f}")

        if return_details:
            details = {
                'level': level,
                'wavelet': self.wavelet,
                'sigma': sigma,
                'threshold': threshold,
                'snr_improvement': self._estimate_snr_improvement(signal, denoised_signal)
            }
            return denoised_signal, details

        return denoised_signal, None

    def _estimate_snr_improvement(
        self,
        original: np.ndarray,
        denoised: np.ndarray
    ) -> float:
        """
        估计信噪比改善量 (dB)

        噪声估计为去噪前后之差，噪声功率为0时返回0
        """
        noise_power = np.var(original - denoised)
        signal_power = np.var(denoised)

        if noise_power > 0 and signal_power > 0:
            return float(10 * np.log10(signal_power / noise_power))
        return 0.0
