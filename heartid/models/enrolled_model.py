"""
注册模型
========

- LightweightModel: 注册时提取的轻量级特征向量原样保存
- StatisticalModel: 逐维均值/标准差/容差范围 + GMM参数 + 训练元数据

两种模型都可逐字段比较相等并转换为可序列化字典
"""

import numpy as np
from typing import Any, Dict, Union
from dataclasses import dataclass, field

from ..features import (
    FeaturePolicy,
    LightweightFeatures,
    LIGHTWEIGHT_FEATURE_VERSION,
    RICH_FEATURE_VERSION
)
from .gmm import GMMParameters


@dataclass(frozen=True)
class LightweightModel:
    """轻量级注册模型"""

    features: LightweightFeatures

    @property
    def policy(self) -> FeaturePolicy:
        return FeaturePolicy.LIGHTWEIGHT

    @property
    def feature_version(self) -> int:
        return self.features.version

    def to_dict(self) -> Dict[str, Any]:
        f = self.features
        return {
            'mean': f.mean,
            'stdev': f.stdev,
            'slope_energy': f.slope_energy,
            'sample_count': f.sample_count,
            'histogram': list(f.histogram)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], feature_version: int = LIGHTWEIGHT_FEATURE_VERSION):
        return cls(features=LightweightFeatures(
            mean=float(data['mean']),
            stdev=float(data['stdev']),
            slope_energy=float(data['slope_energy']),
            sample_count=int(data['sample_count']),
            histogram=tuple(float(v) for v in data['histogram']),
            version=feature_version
        ))


@dataclass(eq=False)
class StatisticalModel:
    """
    统计注册模型 (RICH)

    Attributes:
        feature_mean: 逐维均值 (D,)
        feature_std: 逐维标准差, 下限1e-6 (D,)
        feature_range: 逐维容差 2.5·std + 1e-6 (D,)
        gmm: z-score空间中的GMM参数
        feature_version: 特征版本
        n_samples: 训练向量数
        n_iterations: EM迭代次数
        converged: EM是否在迭代上限前收敛
    """

    feature_mean: np.ndarray
    feature_std: np.ndarray
    feature_range: np.ndarray
    gmm: GMMParameters
    feature_version: int = RICH_FEATURE_VERSION
    n_samples: int = 0
    n_iterations: int = 0
    converged: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.feature_mean = np.asarray(self.feature_mean, dtype=np.float64).ravel()
        self.feature_std = np.asarray(self.feature_std, dtype=np.float64).ravel()
        self.feature_range = np.asarray(self.feature_range, dtype=np.float64).ravel()

        d = len(self.feature_mean)
        if len(self.feature_std) != d or len(self.feature_range) != d or self.gmm.dimension != d:
            raise ValueError(f"统计模型维度不一致: mean={d}, std={len(self.feature_std)}, "
                             f"range={len(self.feature_range)}, gmm={self.gmm.dimension}")

    @property
    def policy(self) -> FeaturePolicy:
        return FeaturePolicy.RICH

    @property
    def dimension(self) -> int:
        return len(self.feature_mean)

    def __eq__(self, other) -> bool:
        if not isinstance(other, StatisticalModel):
            return NotImplemented
        return (np.array_equal(self.feature_mean, other.feature_mean)
                and np.array_equal(self.feature_std, other.feature_std)
                and np.array_equal(self.feature_range, other.feature_range)
                and self.gmm == other.gmm
                and self.feature_version == other.feature_version
                and self.n_samples == other.n_samples
                and self.n_iterations == other.n_iterations
                and self.converged == other.converged
                and self.metadata == other.metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'feature_mean': self.feature_mean.tolist(),
            'feature_std': self.feature_std.tolist(),
            'feature_range': self.feature_range.tolist(),
            'gmm': self.gmm.to_dict(),
            'n_samples': self.n_samples,
            'n_iterations': self.n_iterations,
            'converged': self.converged,
            'metadata': dict(self.metadata)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], feature_version: int = RICH_FEATURE_VERSION):
        return cls(
            feature_mean=np.array(data['feature_mean'], dtype=np.float64),
            feature_std=np.array(data['feature_std'], dtype=np.float64),
            feature_range=np.array(data['feature_range'], dtype=np.float64),
            gmm=GMMParameters.from_dict(data['gmm']),
            feature_version=feature_version,
            n_samples=int(data.get('n_samples', 0)),
            n_iterations=int(data.get('n_iterations', 0)),
            converged=bool(data.get('converged', False)),
            metadata=dict(data.get('metadata', {}))
        )


EnrolledModel = Union[LightweightModel, StatisticalModel]
