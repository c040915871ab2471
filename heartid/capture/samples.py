"""
采样数据模型
============

RawSample: 传感器产生的单个测量值 (BPM或波形幅值)
SampleWindow: 一次采集时长内按时间排序的样本序列
"""

import numpy as np
from typing import Iterable, List, Optional, Sequence, Union
from dataclasses import dataclass, field

# 生理学合理心率范围 (BPM)
MIN_PLAUSIBLE_BPM = 30.0
MAX_PLAUSIBLE_BPM = 200.0


@dataclass(frozen=True)
class RawSample:
    """单个传感器样本"""

    value: float
    timestamp: float = 0.0  # 秒
    quality: float = 1.0  # 0-1

    def __post_init__(self):
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality 必须在[0, 1]内: {self.quality}")

    @property
    def is_valid(self) -> bool:
        """心率值是否在生理学合理范围内"""
        return bool(np.isfinite(self.value)
                    and MIN_PLAUSIBLE_BPM <= self.value <= MAX_PLAUSIBLE_BPM)


@dataclass
class SampleWindow:
    """
    采集窗口

    Attributes:
        samples: 按时间戳排序的样本
        requested_duration: 请求的采集时长 (秒)
        cancelled: 是否被用户提前终止
    """

    samples: List[RawSample] = field(default_factory=list)
    requested_duration: float = 0.0
    cancelled: bool = False

    def __post_init__(self):
        self.samples = sorted(self.samples, key=lambda s: s.timestamp)

    def __len__(self) -> int:
        return len(self.samples)

    def append(self, sample: RawSample) -> None:
        """追加样本 (采集过程中按到达顺序调用)"""
        if self.samples and sample.timestamp < self.samples[-1].timestamp:
            self.samples = sorted(self.samples + [sample], key=lambda s: s.timestamp)
        else:
            self.samples.append(sample)

    @property
    def values(self) -> np.ndarray:
        return np.array([s.value for s in self.samples], dtype=np.float64)

    @property
    def duration(self) -> float:
        if len(self.samples) < 2:
            return 0.0
        return self.samples[-1].timestamp - self.samples[0].timestamp

    @property
    def quality_score(self) -> float:
        """有效样本比例 × 平均质量"""
        if not self.samples:
            return 0.0
        validity_ratio = sum(s.is_valid for s in self.samples) / len(self.samples)
        avg_quality = float(np.mean([s.quality for s in self.samples]))
        return validity_ratio * avg_quality

    def has_sufficient_data(self, min_samples: int) -> bool:
        return len(filter_plausible(self.samples)) >= min_samples

    @classmethod
    def from_values(
        cls,
        values: Sequence[float],
        sampling_interval: float = 1.0,
        quality: float = 1.0
    ) -> 'SampleWindow':
        """由数值序列构造等间隔采集窗口"""
        samples = [
            RawSample(value=float(v), timestamp=i * sampling_interval, quality=quality)
            for i, v in enumerate(values)
        ]
        return cls(samples=samples, requested_duration=len(samples) * sampling_interval)


SampleInput = Union[SampleWindow, Iterable[RawSample], Iterable[float], np.ndarray]


def as_raw_samples(samples: SampleInput) -> List[RawSample]:
    """将各种输入形式统一为 RawSample 列表"""
    if isinstance(samples, SampleWindow):
        return list(samples.samples)
    if isinstance(samples, np.ndarray):
        return [RawSample(value=float(v), timestamp=float(i)) for i, v in enumerate(samples.ravel())]

    result = []
    for i, item in enumerate(samples):
        if isinstance(item, RawSample):
            result.append(item)
        else:
            result.append(RawSample(value=float(item), timestamp=float(i)))
    return result


def filter_plausible(
    samples: SampleInput,
    min_quality: float = 0.0,
    plausible_range: Optional[tuple] = None
) -> np.ndarray:
    """
    过滤生理学上不合理或质量过低的样本

    Args:
        samples: 输入样本
        min_quality: 最低质量要求
        plausible_range: (min, max) 合理范围，默认30-200 BPM

    Returns:
        有效样本值数组
    """
    low, high = plausible_range if plausible_range else (MIN_PLAUSIBLE_BPM, MAX_PLAUSIBLE_BPM)
    values = [
        s.value for s in as_raw_samples(samples)
        if np.isfinite(s.value) and low <= s.value <= high and s.quality >= min_quality
    ]
    return np.asarray(values, dtype=np.float64)
