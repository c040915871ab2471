"""
特征提取管道
============

按特征策略 (FeaturePolicy) 分派的统一特征提取接口

- LIGHTWEIGHT: BPM样本 -> 轻量级统计特征
- RICH: 原始波形 -> 预处理 -> 心拍 -> 逐心拍形态学特征矩阵

同一次注册只能使用一种策略，认证时必须保持一致
"""

import numpy as np
from enum import Enum
from typing import Optional, Union
from dataclasses import dataclass, field
from loguru import logger

from ..capture.samples import SampleInput, SampleWindow, as_raw_samples
from ..preprocessing import SignalPreprocessor, PreprocessingConfig, PreprocessingResult
from .lightweight_features import (
    LightweightFeatureExtractor,
    LightweightFeatureConfig,
    LightweightFeatures
)
from .morphological_features import RichFeatureExtractor, RichFeatureConfig, RichFeatures


class FeaturePolicy(str, Enum):
    """特征策略"""

    LIGHTWEIGHT = 'lightweight'
    RICH = 'rich'

    @classmethod
    def parse(cls, value: Union['FeaturePolicy', str]) -> 'FeaturePolicy':
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


FeatureBatch = Union[LightweightFeatures, RichFeatures]


def policy_of(features: FeatureBatch) -> FeaturePolicy:
    """由特征对象类型推断其策略"""
    if isinstance(features, LightweightFeatures):
        return FeaturePolicy.LIGHTWEIGHT
    if isinstance(features, RichFeatures):
        return FeaturePolicy.RICH
    raise TypeError(f"未知的特征类型: {type(features).__name__}")


@dataclass
class FeatureConfig:
    """特征提取配置"""

    policy: FeaturePolicy = FeaturePolicy.RICH

    # 至少需要的心拍数 (RICH)
    min_beats: int = 1

    lightweight: LightweightFeatureConfig = field(default_factory=LightweightFeatureConfig)
    rich: RichFeatureConfig = field(default_factory=RichFeatureConfig)


class FeatureExtractor:
    """
    特征提取器

    Usage:
        extractor = FeatureExtractor(config)
        features = extractor.extract_features(samples)
    """

    def __init__(
        self,
        config: Optional[FeatureConfig] = None,
        preprocessing: Optional[PreprocessingConfig] = None
    ):
        """
        初始化特征提取器

        Args:
            config: 特征提取配置
            preprocessing: 预处理配置 (仅RICH策略使用)
        """
        self.config = config if config else FeatureConfig()
        self.config.policy = FeaturePolicy.parse(self.config.policy)

        self.preprocessor = SignalPreprocessor(preprocessing)
        pre_cfg = self.preprocessor.config

        # 心拍内时间基准与分割窗口一致
        self.config.rich.beat_duration = pre_cfg.beat_pre_r + pre_cfg.beat_post_r

        self.lightweight_extractor = LightweightFeatureExtractor(self.config.lightweight)
        self.rich_extractor = RichFeatureExtractor(self.config.rich)

        self.last_preprocessing: Optional[PreprocessingResult] = None

        logger.info(f"特征提取器初始化完成: policy={self.config.policy.value}")

    @property
    def policy(self) -> FeaturePolicy:
        return self.config.policy

    def extract_features(self, samples: SampleInput) -> Optional[FeatureBatch]:
        """
        按配置的策略提取特征

        Args:
            samples: LIGHTWEIGHT 为BPM样本, RICH 为原始波形

        Returns:
            LightweightFeatures / RichFeatures; 数据不足时返回None
        """
        if self.config.policy == FeaturePolicy.LIGHTWEIGHT:
            return self.lightweight_extractor.extract(samples)
        return self.extract_rich(samples)

    def extract_rich(self, waveform: SampleInput) -> Optional[RichFeatures]:
        """
        波形 -> 预处理 -> 形态学特征

        Args:
            waveform: 原始波形

        Returns:
            RichFeatures 或 None
        """
        signal = self._as_waveform(waveform)
        result = self.preprocessor.process(signal)
        self.last_preprocessing = result

        if not result.is_valid() or result.n_beats < self.config.min_beats:
            logger.warning(f"心拍不足, 无法提取形态学特征: {result.n_beats} 个心拍"
                           + (f" ({result.failure_reason})" if result.failure_reason else ""))
            return None

        return self.rich_extractor.extract(result.beats)

    @staticmethod
    def _as_waveform(samples: SampleInput) -> np.ndarray:
        if isinstance(samples, np.ndarray):
            return samples.astype(np.float64).ravel()
        if isinstance(samples, SampleWindow):
            return samples.values
        return np.array([s.value for s in as_raw_samples(samples)], dtype=np.float64)
