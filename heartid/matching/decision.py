"""
匹配判决结果
============

匹配器对任何输入都返回 MatchDecision, 不抛出异常
"""

import math
from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass


class MatchOutcome(str, Enum):
    ACCEPTED = 'accepted'
    DENIED = 'denied'
    RETRY_ELIGIBLE = 'retry_eligible'
    ERROR = 'error'


class ErrorKind(str, Enum):
    INSUFFICIENT_DATA = 'insufficient_data'
    POLICY_MISMATCH = 'policy_mismatch'
    DIMENSION_MISMATCH = 'dimension_mismatch'
    INVALID_INPUT = 'invalid_input'
    NO_ENROLLMENT = 'no_enrollment'
    STORAGE_FAILURE = 'storage_failure'
    INTERNAL = 'internal'


@dataclass(frozen=True)
class MatchDecision:
    """
    判决结果

    Attributes:
        outcome: 判决类型
        score: 轻量级距离得分 (RICH时为投票率)
        confidence: 仅用于展示的置信度 (0-1)
        vote_ratio: 投票通过率 (RICH)
        mean_log_likelihood: GMM平均对数似然 (RICH)
        threshold: 生效的判决阈值
        attempts_remaining: 剩余重试次数 (RETRY_ELIGIBLE)
        reason: 拒绝/错误原因
        error_kind: 错误类型 (ERROR)
    """

    outcome: MatchOutcome
    score: float = math.nan
    confidence: float = 0.0
    vote_ratio: Optional[float] = None
    mean_log_likelihood: Optional[float] = None
    threshold: Optional[float] = None
    attempts_remaining: int = 0
    reason: str = ''
    error_kind: Optional[ErrorKind] = None
    security_level: Optional[str] = None
    policy: Optional[str] = None

    @property
    def is_accepted(self) -> bool:
        return self.outcome == MatchOutcome.ACCEPTED

    @property
    def can_retry(self) -> bool:
        return self.outcome == MatchOutcome.RETRY_ELIGIBLE and self.attempts_remaining > 0

    @classmethod
    def error(cls, kind: ErrorKind, reason: str, **kwargs) -> 'MatchDecision':
        return cls(outcome=MatchOutcome.ERROR, error_kind=kind, reason=reason, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'outcome': self.outcome.value,
            'score': None if math.isnan(self.score) else self.score,
            'confidence': self.confidence,
            'vote_ratio': self.vote_ratio,
            'mean_log_likelihood': self.mean_log_likelihood,
            'threshold': self.threshold,
            'attempts_remaining': self.attempts_remaining,
            'reason': self.reason,
            'error_kind': self.error_kind.value if self.error_kind else None,
            'security_level': self.security_level,
            'policy': self.policy
        }
