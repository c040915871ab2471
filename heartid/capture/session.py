"""
异步采集会话
============

消费传感器样本流直到:
1. 采集时长到达
2. 样本流结束
3. 调用 cancel()

每个会话同一时刻只允许一个采集窗口
"""

import asyncio
from typing import Optional
from loguru import logger

from .samples import SampleWindow
from .sensor import SensorCollaborator
from ..utils.exceptions import CaptureInProgressError


class CaptureSession:
    """
    采集会话

    Usage:
        session = CaptureSession(sensor)
        window = await session.capture(policy.capture_duration)
    """

    def __init__(self, sensor: SensorCollaborator):
        self.sensor = sensor
        self._active = False
        self._cancel_requested = False
        self._consumer: Optional[asyncio.Future] = None

    @property
    def is_active(self) -> bool:
        return self._active

    async def capture(self, duration: float) -> SampleWindow:
        """
        采集一个窗口

        Args:
            duration: 采集时长 (秒)

        Returns:
            SampleWindow (被取消时 cancelled=True, 只含已到达的样本)

        Raises:
            CaptureInProgressError: 已有采集正在进行
            SensorError: 传感器报告错误
        """
        if self._active:
            raise CaptureInProgressError(details={"requested_duration": duration})

        self._active = True
        self._cancel_requested = False
        window = SampleWindow(requested_duration=duration)

        try:
            stream = self.sensor.start_capture(duration)
            consumer = asyncio.ensure_future(self._consume(stream, window, duration))
            self._consumer = consumer

            done, _ = await asyncio.wait({consumer}, timeout=duration)
            if consumer not in done:
                consumer.cancel()
                await asyncio.gather(consumer, return_exceptions=True)
            elif not consumer.cancelled():
                consumer.result()
        finally:
            self._consumer = None
            await self.sensor.stop_capture()
            self._active = False

        window.cancelled = self._cancel_requested
        logger.info(f"采集结束: {len(window)} 个样本, 时长 {window.duration:.2f}s"
                    + (" (已取消)" if window.cancelled else ""))
        return window

    def cancel(self) -> None:
        """提前终止当前采集"""
        if not self._active:
            return
        self._cancel_requested = True
        if self._consumer is not None:
            self._consumer.cancel()
        logger.debug("采集取消请求")

    @staticmethod
    async def _consume(stream, window: SampleWindow, duration: float) -> None:
        start = None
        try:
            async for sample in stream:
                if start is None:
                    start = sample.timestamp
                if sample.timestamp - start >= duration:
                    break
                window.append(sample)
        finally:
            aclose = getattr(stream, 'aclose', None)
            if aclose is not None:
                await aclose()
