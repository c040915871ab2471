"""
特征工程模块
============

包含:
- 轻量级心率统计特征 (LIGHTWEIGHT)
- 逐心拍形态学特征 (RICH)
- 按策略分派的特征提取管道
"""

from .lightweight_features import (
    LightweightFeatureExtractor,
    LightweightFeatureConfig,
    LightweightFeatures,
    LIGHTWEIGHT_FEATURE_VERSION
)
from .morphological_features import (
    RichFeatureExtractor,
    RichFeatureConfig,
    RichFeatures,
    RICH_FEATURE_DIM,
    RICH_FEATURE_NAMES,
    RICH_FEATURE_VERSION
)
from .feature_pipeline import FeatureExtractor, FeatureConfig, FeaturePolicy, FeatureBatch, policy_of

__all__ = [
    'LightweightFeatureExtractor',
    'LightweightFeatureConfig',
    'LightweightFeatures',
    'LIGHTWEIGHT_FEATURE_VERSION',
    'RichFeatureExtractor',
    'RichFeatureConfig',
    'RichFeatures',
    'RICH_FEATURE_DIM',
    'RICH_FEATURE_NAMES',
    'RICH_FEATURE_VERSION',
    'FeatureExtractor',
    'FeatureConfig',
    'FeaturePolicy',
    'FeatureBatch',
    'policy_of'
]
