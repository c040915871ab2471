"""
安全等级策略表
==============

SecurityLevel -> SecurityPolicy 的纯映射

| 等级    | 采集(s) | 最少样本 | 重试 | 超时(s) | 调整因子 | 处理(s) |
|---------|---------|----------|------|---------|----------|---------|
| low     | 6       | 5        | 5    | 30      | 0.90     | 1.0     |
| medium  | 8       | 8        | 3    | 20      | 0.95     | 1.5     |
| high    | 10      | 12       | 2    | 15      | 1.00     | 2.0     |
| maximum | 12      | 15       | 1    | 10      | 1.20     | 2.5     |

调整因子越大越严格:
- 比例阈值 (投票通过率): base × factor
- 距离阈值 (轻量级得分, 越小越相似): base / factor
"""

from enum import Enum
from typing import Dict, Mapping, Optional, Union
from dataclasses import dataclass, asdict, replace
from loguru import logger

from ..utils.exceptions import ConfigurationError


class SecurityLevel(Enum):
    """有序安全等级"""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    MAXIMUM = 4

    def __lt__(self, other):
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, SecurityLevel):
            return NotImplemented
        return self.value >= other.value

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Union['SecurityLevel', str]) -> 'SecurityLevel':
        """接受枚举或其名称 (不区分大小写)"""
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ConfigurationError(f"未知的安全等级: {value}",
                                     details={"valid": [lvl.label for lvl in cls]}) from None

    def upgrade(self) -> Optional['SecurityLevel']:
        """上调一级; 已是最高时返回None"""
        levels = list(SecurityLevel)
        idx = levels.index(self)
        return levels[idx + 1] if idx + 1 < len(levels) else None

    def downgrade(self) -> Optional['SecurityLevel']:
        """下调一级; 已是最低时返回None"""
        levels = list(SecurityLevel)
        idx = levels.index(self)
        return levels[idx - 1] if idx > 0 else None

    @property
    def requires_additional_validation(self) -> bool:
        return self >= SecurityLevel.HIGH


@dataclass(frozen=True)
class SecurityPolicy:
    """单个安全等级对应的采集与判决参数"""

    capture_duration: float
    min_samples: int
    max_retry_attempts: int
    authentication_timeout: float
    confidence_adjustment_factor: float
    recommended_processing_time: float

    def __post_init__(self):
        if self.confidence_adjustment_factor <= 0:
            raise ConfigurationError("confidence_adjustment_factor 必须为正数",
                                     details={"value": self.confidence_adjustment_factor})
        if self.min_samples < 1 or self.max_retry_attempts < 0:
            raise ConfigurationError("min_samples 必须 ≥ 1 且 max_retry_attempts 必须 ≥ 0")

    def effective_threshold(self, base: float) -> float:
        """比例型阈值 (越大越严格)"""
        return base * self.confidence_adjustment_factor

    def effective_distance_threshold(self, base: float) -> float:
        """距离型阈值 (越小越严格)"""
        return base / self.confidence_adjustment_factor

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_POLICIES: Dict[SecurityLevel, SecurityPolicy] = {
    SecurityLevel.LOW: SecurityPolicy(
        capture_duration=6.0,
        min_samples=5,
        max_retry_attempts=5,
        authentication_timeout=30.0,
        confidence_adjustment_factor=0.90,
        recommended_processing_time=1.0
    ),
    SecurityLevel.MEDIUM: SecurityPolicy(
        capture_duration=8.0,
        min_samples=8,
        max_retry_attempts=3,
        authentication_timeout=20.0,
        confidence_adjustment_factor=0.95,
        recommended_processing_time=1.5
    ),
    SecurityLevel.HIGH: SecurityPolicy(
        capture_duration=10.0,
        min_samples=12,
        max_retry_attempts=2,
        authentication_timeout=15.0,
        confidence_adjustment_factor=1.00,
        recommended_processing_time=2.0
    ),
    SecurityLevel.MAXIMUM: SecurityPolicy(
        capture_duration=12.0,
        min_samples=15,
        max_retry_attempts=1,
        authentication_timeout=10.0,
        confidence_adjustment_factor=1.20,
        recommended_processing_time=2.5
    ),
}


class SecurityPolicyTable:
    """
    安全策略表

    默认使用 DEFAULT_POLICIES, 可由配置文件按等级覆盖部分字段

    Usage:
        table = SecurityPolicyTable({'high': {'min_samples': 14}})
        policy = table.policy_for('high')
    """

    def __init__(self, overrides: Optional[Mapping[str, Mapping[str, float]]] = None):
        self._policies = dict(DEFAULT_POLICIES)
        for name, fields in (overrides or {}).items():
            level = SecurityLevel.parse(name)
            unknown = set(fields) - set(SecurityPolicy.__dataclass_fields__)
            if unknown:
                raise ConfigurationError(f"未知的安全策略字段: {sorted(unknown)}",
                                         details={"level": level.label})
            self._policies[level] = replace(self._policies[level], **fields)
            logger.debug(f"安全策略覆盖: {level.label} <- {dict(fields)}")

    def policy_for(self, level: Union[SecurityLevel, str]) -> SecurityPolicy:
        return self._policies[SecurityLevel.parse(level)]

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {level.label: policy.to_dict() for level, policy in self._policies.items()}


def policy_for(level: Union[SecurityLevel, str]) -> SecurityPolicy:
    """默认策略表查询"""
    return DEFAULT_POLICIES[SecurityLevel.parse(level)]
