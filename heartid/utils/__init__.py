"""
工具模块
========

包含异常定义、数据加载、合成数据、评估与可视化工具
可视化依赖matplotlib, 需要时从 heartid.utils.visualization 单独导入
"""

from .exceptions import (
    HeartIDError,
    InsufficientDataError,
    PolicyMismatchError,
    TrainingError,
    StorageError,
    CorruptTemplateError,
    StorageIOError,
    CaptureError,
    CaptureInProgressError,
    SensorError,
    ConfigurationError
)

__all__ = [
    'HeartIDError',
    'InsufficientDataError',
    'PolicyMismatchError',
    'TrainingError',
    'StorageError',
    'CorruptTemplateError',
    'StorageIOError',
    'CaptureError',
    'CaptureInProgressError',
    'SensorError',
    'ConfigurationError'
]
