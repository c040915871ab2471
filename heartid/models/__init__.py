"""
模型模块
========

包含:
- 对角协方差GMM (EM训练)
- 注册模型 (轻量级 / 统计)
- 注册训练器
"""

from .gmm import DiagonalGMM, GMMParameters, score_samples
from .enrolled_model import EnrolledModel, LightweightModel, StatisticalModel
from .trainer import EnrollmentTrainer, TrainingConfig

__all__ = [
    'DiagonalGMM',
    'GMMParameters',
    'score_samples',
    'EnrolledModel',
    'LightweightModel',
    'StatisticalModel',
    'EnrollmentTrainer',
    'TrainingConfig'
]
