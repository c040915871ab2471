"""
安全等级模块
============

安全等级枚举与对应的采集/判决策略表
"""

from .policy import (
    SecurityLevel,
    SecurityPolicy,
    SecurityPolicyTable,
    DEFAULT_POLICIES,
    policy_for
)

__all__ = [
    'SecurityLevel',
    'SecurityPolicy',
    'SecurityPolicyTable',
    'DEFAULT_POLICIES',
    'policy_for'
]
