"""
注册训练器
==========

由一个或多个特征批次生成注册模型

- LIGHTWEIGHT: 单个特征向量即模型
- RICH: 拼接所有心拍向量 -> 逐维统计量 -> z-score -> 对角GMM
"""

import numpy as np
from typing import Iterable, List, Optional, Union
from dataclasses import dataclass
from loguru import logger

from ..features import FeaturePolicy, FeatureBatch, LightweightFeatures, RichFeatures, policy_of
from ..utils.exceptions import InsufficientDataError, PolicyMismatchError, TrainingError
from .gmm import DiagonalGMM
from .enrolled_model import EnrolledModel, LightweightModel, StatisticalModel


@dataclass
class TrainingConfig:
    """训练配置"""

    # GMM
    n_components: int = 3
    max_iter: int = 50
    tol: float = 1e-4
    reg_covar: float = 1e-6
    min_weight: float = 1e-9
    random_state: Optional[int] = 42

    # 逐维统计量
    std_floor: float = 1e-6
    range_multiplier: float = 2.5
    range_epsilon: float = 1e-6


class EnrollmentTrainer:
    """
    注册训练器

    Usage:
        trainer = EnrollmentTrainer()
        model = trainer.train([features_1, features_2])
    """

    def __init__(self, config: Optional[TrainingConfig] = None):
        self.config = config if config else TrainingConfig()

    def train(self, batches: Union[FeatureBatch, Iterable[Optional[FeatureBatch]]]) -> EnrolledModel:
        """
        训练注册模型

        Args:
            batches: 单个特征批次或批次列表 (None项视为无效批次并跳过)

        Returns:
            LightweightModel 或 StatisticalModel

        Raises:
            InsufficientDataError: 没有有效特征
            PolicyMismatchError: 批次策略/维度/版本不一致
            TrainingError: 轻量级策略提供了多个批次
        """
        if batches is None:
            batches = []
        elif isinstance(batches, (LightweightFeatures, RichFeatures)):
            batches = [batches]
        valid = [b for b in batches if b is not None]

        if not valid:
            raise InsufficientDataError("没有可用于注册的特征", required=1, available=0)

        policies = {policy_of(b) for b in valid}
        if len(policies) > 1:
            raise PolicyMismatchError("注册批次混用了不同的特征策略",
                                      expected=FeaturePolicy.RICH.value,
                                      actual=",".join(sorted(p.value for p in policies)))

        if policies.pop() == FeaturePolicy.LIGHTWEIGHT:
            if len(valid) > 1:
                raise TrainingError("轻量级策略只接受单个注册批次",
                                    details={"n_batches": len(valid)})
            logger.info("轻量级注册模型生成完成")
            return LightweightModel(features=valid[0])

        return self.train_statistical(valid)

    def train_statistical(self, batches: List[RichFeatures]) -> StatisticalModel:
        """
        训练统计模型

        Args:
            batches: RichFeatures 列表

        Returns:
            StatisticalModel
        """
        cfg = self.config
        versions = {b.feature_version for b in batches}
        dims = {b.dimension for b in batches if b.n_beats > 0}
        if len(versions) > 1 or len(dims) > 1:
            raise PolicyMismatchError("注册批次的特征版本或维度不一致",
                                      expected=str(sorted(versions)),
                                      actual=str(sorted(dims)))

        X = np.vstack([b.vectors for b in batches if b.n_beats > 0]) if dims else np.empty((0, 0))
        n_samples = X.shape[0]
        if n_samples == 0:
            raise InsufficientDataError("注册批次中没有心拍特征", required=1, available=0)

        if not np.all(np.isfinite(X)):
            raise TrainingError("注册特征包含NaN或Inf")

        feature_mean = X.mean(axis=0)
        feature_std = X.std(axis=0, ddof=1) if n_samples > 1 else np.zeros(X.shape[1])
        feature_std = np.maximum(feature_std, cfg.std_floor)
        feature_range = cfg.range_multiplier * feature_std + cfg.range_epsilon

        Z = (X - feature_mean) / feature_std

        gmm = DiagonalGMM(
            n_components=cfg.n_components,
            max_iter=cfg.max_iter,
            tol=cfg.tol,
            reg_covar=cfg.reg_covar,
            min_weight=cfg.min_weight,
            random_state=cfg.random_state
        ).fit(Z)

        logger.info(f"统计注册模型训练完成: {n_samples} 个向量 x {X.shape[1]} 维, "
                    f"GMM K={cfg.n_components}, 迭代 {gmm.n_iter_} 次, "
                    f"{'已收敛' if gmm.converged_ else '未收敛'}")

        return StatisticalModel(
            feature_mean=feature_mean,
            feature_std=feature_std,
            feature_range=feature_range,
            gmm=gmm.params_,
            feature_version=versions.pop(),
            n_samples=n_samples,
            n_iterations=gmm.n_iter_,
            converged=gmm.converged_,
            metadata={'n_batches': len(batches)}
        )

