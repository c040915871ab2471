"""
心拍形态学特征提取模块
====================

从每个归一化心拍中提取固定维度的形态学特征向量
用于GMM统计建模与逐维投票匹配

特征类别 (共18维, 版本1):
-------------------------
1. 幅度特征 (5): R/P/T标志点幅度, R/P比, R/T比
2. 时间特征 (4): R峰位置, QRS时长, R前斜率, R后斜率
3. 形态特征 (3): 半高宽, QRS区面积, T区面积
4. 能量特征 (2): 总能量, QRS区能量
5. 频谱特征 (4): 低/中/高频带功率占比, RMS

P/T标志点取R峰前后固定点数处的样本，
特征维度与版本号一起写入注册模型，匹配时必须一致
"""

import numpy as np
from scipy.fft import rfft
from scipy.integrate import trapezoid
from typing import List, Optional
from dataclasses import dataclass, field
from loguru import logger

RICH_FEATURE_VERSION = 1

RICH_FEATURE_NAMES = [
    # 幅度
    'r_amplitude', 'p_amplitude', 't_amplitude', 'r_p_ratio', 'r_t_ratio',
    # 时间
    'r_position', 'qrs_duration', 'pre_r_slope', 'post_r_slope',
    # 形态
    'half_max_width', 'qrs_area', 't_area',
    # 能量
    'total_energy', 'qrs_energy',
    # 频谱
    'low_band_ratio', 'mid_band_ratio', 'high_band_ratio', 'rms'
]

RICH_FEATURE_DIM = len(RICH_FEATURE_NAMES)


@dataclass
class RichFeatureConfig:
    """形态学特征配置"""

    qrs_half_width: int = 20  # R峰两侧标志点距离 (心拍采样点)
    t_zone_width: int = 20  # T区宽度 (心拍采样点)
    ratio_floor: float = 1e-2  # 幅度比分母下限 (保留符号)
    beat_duration: float = 0.6  # 单个心拍窗口时长 (秒)


@dataclass
class RichFeatures:
    """
    逐心拍特征矩阵

    Attributes:
        vectors: (n_beats, RICH_FEATURE_DIM)
        feature_version: 特征版本号
    """

    vectors: np.ndarray = field(default_factory=lambda: np.empty((0, RICH_FEATURE_DIM)))
    feature_version: int = RICH_FEATURE_VERSION
    feature_names: List[str] = field(default_factory=lambda: list(RICH_FEATURE_NAMES))

    def __len__(self) -> int:
        return len(self.vectors)

    @property
    def n_beats(self) -> int:
        return len(self.vectors)

    @property
    def dimension(self) -> int:
        return self.vectors.shape[1] if self.vectors.ndim == 2 else 0


class RichFeatureExtractor:
    """
    心拍形态学特征提取器

    Usage:
        extractor = RichFeatureExtractor()
        features = extractor.extract(beats)
    """

    def __init__(self, config: Optional[RichFeatureConfig] = None):
        """
        初始化特征提取器

        Args:
            config: 特征配置
        """
        self.config = config if config else RichFeatureConfig()

    def extract(self, beats: np.ndarray) -> RichFeatures:
        """
        批量提取心拍特征

        Args:
            beats: 心拍数组 (n_beats, beat_length)

        Returns:
            RichFeatures
        """
        beats = np.asarray(beats, dtype=np.float64)
        if beats.ndim != 2 or len(beats) == 0:
            return RichFeatures()

        vectors = np.vstack([self.extract_beat_features(beat) for beat in beats])

        logger.debug(f"形态学特征: {vectors.shape[0]} 个心拍 x {vectors.shape[1]} 维")

        return RichFeatures(vectors=vectors)

    def extract_beat_features(self, beat: np.ndarray) -> np.ndarray:
        """
        提取单心拍特征

        Args:
            beat: 单个心拍波形 (z-score归一化)

        Returns:
            特征向量 (RICH_FEATURE_DIM,)
        """
        cfg = self.config
        n = len(beat)
        dt = cfg.beat_duration / max(n - 1, 1)  # 心拍内采样间隔 (秒)

        r_idx = int(np.argmax(beat))
        r_amp = float(beat[r_idx])
        pre = max(0, r_idx - cfg.qrs_half_width)
        post = min(n - 1, r_idx + cfg.qrs_half_width)
        t_end = min(n - 1, post + cfg.t_zone_width)

        # ========== 幅度特征 ==========
        p_amp = float(beat[pre])
        t_amp = float(beat[post])

        # ========== 时间特征 ==========
        pre_slope = self._slope(beat, pre, r_idx, dt)
        post_slope = self._slope(beat, r_idx, post, dt)

        # ========== 形态特征 ==========
        qrs_area = float(trapezoid(beat[pre:post + 1])) if post > pre else 0.0
        t_area = float(trapezoid(beat[post:t_end + 1])) if t_end > post else 0.0

        # ========== 能量特征 ==========
        total_energy = float(np.dot(beat, beat))
        qrs_energy = float(np.sum(beat[pre:post] ** 2))

        features = [
            r_amp,
            p_amp,
            t_amp,
            self._safe_ratio(r_amp, p_amp),
            self._safe_ratio(r_amp, t_amp),
            r_idx * dt,
            (post - pre) * dt,
            pre_slope,
            post_slope,
            self._width_at_half_max(beat, r_idx) * dt,
            qrs_area,
            t_area,
            total_energy,
            qrs_energy,
            *self._spectral_features(beat)
        ]

        return np.asarray(features, dtype=np.float64)

    def _safe_ratio(self, numerator: float, denominator: float) -> float:
        """分母按绝对值取下限并保留符号"""
        floor = self.config.ratio_floor
        den = float(np.copysign(max(abs(denominator), floor), denominator))
        return numerator / den

    @staticmethod
    def _slope(x: np.ndarray, start: int, end: int, dt: float) -> float:
        if end <= start:
            return 0.0
        return float((x[end] - x[start]) / ((end - start) * dt))

    @staticmethod
    def _width_at_half_max(x: np.ndarray, center: int) -> int:
        """
        半高宽 (采样点)

        从峰值向两侧搜索首个不高于半峰值的点
        """
        half = x[center] / 2
        below = x <= half

        left_hits = np.flatnonzero(below[:center + 1])
        left = int(left_hits[-1]) if len(left_hits) else 0

        right_hits = np.flatnonzero(below[center:])
        right = center + int(right_hits[0]) if len(right_hits) else len(x) - 1

        return right - left

    @staticmethod
    def _spectral_features(beat: np.ndarray) -> List[float]:
        """
        简化频带特征

        去均值后做实数FFT，按 1/4 : 1/2 : 1/4 划分低/中/高频带
        返回 [低频占比, 中频占比, 高频占比, RMS]
        """
        centered = beat - np.mean(beat)
        power = np.abs(rfft(centered)[1:]) ** 2  # 去掉直流分量
        m = len(power)
        if m < 4:
            return [0.0, 0.0, 0.0, float(np.sqrt(np.mean(centered ** 2)))]

        q = m // 4
        low = np.sum(power[:q])
        mid = np.sum(power[q:q + m // 2])
        high = np.sum(power[q + m // 2:])
        total = max(low + mid + high, 1e-6)

        return [
            float(low / total),
            float(mid / total),
            float(high / total),
            float(np.sqrt(np.mean(centered ** 2)))
        ]
