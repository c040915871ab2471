"""
传感器协作接口
==============

认证引擎不直接访问硬件，通过 SensorCollaborator 接口获取异步样本流
SimulatedSensor 按给定数值序列回放样本，用于测试和演示
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Sequence
from loguru import logger

from .samples import RawSample
from ..utils.exceptions import SensorError


class SensorCollaborator(ABC):
    """传感器协作方抽象接口"""

    @abstractmethod
    def start_capture(self, duration: float) -> AsyncIterator[RawSample]:
        """
        开始采集

        Args:
            duration: 采集时长 (秒)

        Returns:
            RawSample 异步迭代器
        """

    @abstractmethod
    async def stop_capture(self) -> None:
        """停止采集 (可重复调用)"""

    @property
    @abstractmethod
    def is_capturing(self) -> bool:
        ...


class SimulatedSensor(SensorCollaborator):
    """
    模拟传感器

    Usage:
        sensor = SimulatedSensor([72, 74, 73], sampling_interval=1.0)
        async for sample in sensor.start_capture(8.0):
            ...
    """

    def __init__(
        self,
        values: Sequence[float],
        sampling_interval: float = 1.0,
        quality: float = 1.0,
        realtime: bool = False,
        fail_at: Optional[int] = None
    ):
        """
        Args:
            values: 回放的样本值 (BPM或波形幅值)
            sampling_interval: 样本间隔 (秒)
            quality: 样本质量
            realtime: 是否按真实时间间隔输出
            fail_at: 在第几个样本处模拟传感器故障
        """
        self.values = [float(v) for v in values]
        self.sampling_interval = sampling_interval
        self.quality = quality
        self.realtime = realtime
        self.fail_at = fail_at
        self._capturing = False

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    def start_capture(self, duration: float) -> AsyncIterator[RawSample]:
        if self._capturing:
            raise SensorError("传感器已在采集中")
        self._capturing = True
        logger.debug(f"模拟传感器开始采集: {duration}s, {len(self.values)} 个候选样本")
        return self._stream(duration)

    async def stop_capture(self) -> None:
        self._capturing = False

    async def _stream(self, duration: float) -> AsyncIterator[RawSample]:
        try:
            for i, value in enumerate(self.values):
                timestamp = i * self.sampling_interval
                if not self._capturing or timestamp >= duration:
                    break
                if self.fail_at is not None and i >= self.fail_at:
                    raise SensorError(f"传感器在第 {i} 个样本处失去接触",
                                      details={"index": i})

                await asyncio.sleep(self.sampling_interval if self.realtime else 0)
                yield RawSample(value=value, timestamp=timestamp, quality=self.quality)
        finally:
            self._capturing = False
