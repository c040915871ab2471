"""
匹配模块
========

实时特征与注册模型的比较与判决
"""

from .decision import MatchDecision, MatchOutcome, ErrorKind
from .matcher import HeartMatcher, MatcherConfig

__all__ = [
    'MatchDecision',
    'MatchOutcome',
    'ErrorKind',
    'HeartMatcher',
    'MatcherConfig'
]
