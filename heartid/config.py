"""
引擎配置
========

汇总各组件的dataclass配置, 所有经验阈值都集中在这里

JSON配置文件只需给出要覆盖的字段, 例如:
{
    "matcher": {"pass_ratio": 0.75},
    "security": {"high": {"min_samples": 14}},
    "default_level": "high"
}
未知字段抛出 ConfigurationError
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Union
from dataclasses import dataclass, field, fields, is_dataclass
from loguru import logger

from .preprocessing import PreprocessingConfig
from .features import FeatureConfig, FeaturePolicy
from .models import TrainingConfig
from .matching import MatcherConfig
from .security import SecurityLevel, SecurityPolicyTable
from .utils.exceptions import ConfigurationError


@dataclass
class EngineConfig:
    """引擎顶层配置"""

    config_version: str = "1.0.0"
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    features: FeatureConfig = field(default_factory=FeatureConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)

    # 安全策略表覆盖 {level: {field: value}}
    security: Dict[str, Dict[str, float]] = field(default_factory=dict)
    default_level: str = 'medium'

    # 默认存储键
    storage_key: str = 'default'

    def policy_table(self) -> SecurityPolicyTable:
        return SecurityPolicyTable(self.security)

    def to_dict(self) -> Dict[str, Any]:
        """导出当前配置 (含完整安全策略表)"""
        data = _to_plain(self)
        data['security'] = self.policy_table().to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EngineConfig':
        config = cls()
        _apply_overrides(config, data, 'config')

        # 提前校验
        config.policy_table()
        SecurityLevel.parse(config.default_level)
        config.features.policy = FeaturePolicy.parse(config.features.policy)

        return config


def load_config(path: Union[str, Path]) -> EngineConfig:
    """
    从JSON文件加载配置覆盖

    Args:
        path: 配置文件路径

    Returns:
        EngineConfig
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except FileNotFoundError:
        raise ConfigurationError(f"配置文件不存在: {path}") from None
    except ValueError as e:
        raise ConfigurationError(f"配置文件不是有效的JSON: {path}", details={"error": str(e)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError("配置文件顶层必须是对象")

    config = EngineConfig.from_dict(data)
    logger.info(f"已加载配置: {path}")
    return config


def _apply_overrides(target: Any, overrides: Mapping[str, Any], path: str) -> None:
    names = {f.name for f in fields(target)}
    for key, value in overrides.items():
        if key not in names:
            raise ConfigurationError(f"未知的配置项: {path}.{key}",
                                     details={"valid": sorted(names)})

        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigurationError(f"配置项 {path}.{key} 必须是对象")
            _apply_overrides(current, value, f"{path}.{key}")
        elif isinstance(current, Enum):
            try:
                setattr(target, key, type(current)(value))
            except ValueError:
                raise ConfigurationError(f"配置项 {path}.{key} 的取值无效: {value}") from None
        elif isinstance(current, tuple):
            setattr(target, key, tuple(value))
        else:
            setattr(target, key, value)


def _to_plain(obj: Any) -> Any:
    if is_dataclass(obj):
        return {f.name: _to_plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_to_plain(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _to_plain(v) for k, v in obj.items()}
    return obj
