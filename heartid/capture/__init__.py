"""
采集模块
========

包含:
- 样本与采集窗口数据模型
- 传感器协作接口与模拟传感器
- 异步采集会话
"""

from .samples import (
    RawSample,
    SampleWindow,
    SampleInput,
    as_raw_samples,
    filter_plausible,
    MIN_PLAUSIBLE_BPM,
    MAX_PLAUSIBLE_BPM
)
from .sensor import SensorCollaborator, SimulatedSensor
from .session import CaptureSession

__all__ = [
    'RawSample',
    'SampleWindow',
    'SampleInput',
    'as_raw_samples',
    'filter_plausible',
    'MIN_PLAUSIBLE_BPM',
    'MAX_PLAUSIBLE_BPM',
    'SensorCollaborator',
    'SimulatedSensor',
    'CaptureSession'
]
