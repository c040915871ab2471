"""
轻量级心率特征提取模块
======================

直接从BPM样本序列提取低维、难以逆推的统计特征
适用于只有心率读数、没有原始波形的设备

特征:
-----
- mean: 总体均值
- stdev: 总体标准差
- slope_energy: 一阶差分平方和 / n
- histogram: 6个归一化直方图区间，范围为 mean ± 3·max(stdev, 1)
"""

import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass, field
from loguru import logger

from ..capture.samples import SampleInput, filter_plausible

LIGHTWEIGHT_FEATURE_VERSION = 1


@dataclass
class LightweightFeatureConfig:
    """轻量级特征配置"""

    min_samples: int = 8
    n_bins: int = 6
    clip_sigmas: float = 3.0
    min_stdev: float = 1.0
    min_quality: float = 0.0


@dataclass(frozen=True)
class LightweightFeatures:
    """轻量级特征向量"""

    mean: float
    stdev: float
    slope_energy: float
    sample_count: int
    histogram: Tuple[float, ...] = field(default_factory=tuple)
    version: int = LIGHTWEIGHT_FEATURE_VERSION

    def to_vector(self) -> np.ndarray:
        """转换为数值向量 [mean, stdev, slope_energy, sample_count, *histogram]"""
        return np.array(
            [self.mean, self.stdev, self.slope_energy, float(self.sample_count), *self.histogram],
            dtype=np.float64
        )


class LightweightFeatureExtractor:
    """
    轻量级特征提取器

    Usage:
        extractor = LightweightFeatureExtractor()
        features = extractor.extract([72, 74, 73, ...])
    """

    def __init__(self, config: Optional[LightweightFeatureConfig] = None):
        self.config = config if config else LightweightFeatureConfig()

    def extract(self, samples: SampleInput) -> Optional[LightweightFeatures]:
        """
        提取轻量级特征

        先过滤生理学上不合理的样本；有效样本不足时返回None

        Args:
            samples: BPM样本

        Returns:
            LightweightFeatures 或 None
        """
        values = filter_plausible(samples, min_quality=self.config.min_quality)
        n = len(values)

        if n < self.config.min_samples:
            logger.warning(f"有效样本不足: {n} < {self.config.min_samples}")
            return None

        mean = float(np.mean(values))
        stdev = float(np.sqrt(max(0.0, np.mean((values - mean) ** 2))))

        # 斜率能量: Σ(x[i] - x[i-1])² / n
        slope_energy = float(np.sum(np.diff(values) ** 2) / n)

        histogram = self._histogram(values, mean, stdev)

        logger.debug(f"轻量级特征: n={n}, mean={mean:.2f}, stdev={stdev:.2f}, "
                    f"slope_energy={slope_energy:.3f}")

        return LightweightFeatures(
            mean=mean,
            stdev=stdev,
            slope_energy=slope_energy,
            sample_count=n,
            histogram=histogram
        )

    def _histogram(self, values: np.ndarray, mean: float, stdev: float) -> Tuple[float, ...]:
        """
        粗粒度归一化直方图

        数值裁剪到 mean ± clip_sigmas·max(stdev, min_stdev)，
        每个区间除以样本总数
        """
        n_bins = self.config.n_bins
        span = 2.0 * self.config.clip_sigmas * max(stdev, self.config.min_stdev)
        low = mean - span / 2
        high = mean + span / 2

        clipped = np.clip(values, low, high)
        t = (clipped - low) / (high - low)
        idx = np.clip(np.floor(t * n_bins).astype(np.int64), 0, n_bins - 1)

        counts = np.bincount(idx, minlength=n_bins).astype(np.float64)
        return tuple(float(c) for c in counts / len(values))
