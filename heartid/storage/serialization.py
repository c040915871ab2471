"""
注册模型序列化
==============

版本化JSON信封:
{
    "format": "heartid.template",
    "format_version": 1,
    "policy": "rich" | "lightweight",
    "feature_version": 1,
    "payload": {...}
}

浮点数以JSON数值保存 (repr往返精度), 反序列化后模型逐字段相等
"""

import json
from typing import Any, Dict

from ..features import FeaturePolicy
from ..models import EnrolledModel, LightweightModel, StatisticalModel
from ..utils.exceptions import CorruptTemplateError

TEMPLATE_FORMAT = "heartid.template"
TEMPLATE_FORMAT_VERSION = 1


def model_to_dict(model: EnrolledModel) -> Dict[str, Any]:
    return {
        'format': TEMPLATE_FORMAT,
        'format_version': TEMPLATE_FORMAT_VERSION,
        'policy': model.policy.value,
        'feature_version': model.feature_version,
        'payload': model.to_dict()
    }


def serialize_model(model: EnrolledModel) -> bytes:
    """模型 -> UTF-8 JSON字节"""
    return json.dumps(model_to_dict(model), sort_keys=True).encode('utf-8')


def deserialize_model(data: bytes, key: str = "") -> EnrolledModel:
    """
    UTF-8 JSON字节 -> 模型

    Raises:
        CorruptTemplateError: 数据无法解析, 格式/版本不受支持或字段缺失
    """
    try:
        envelope = json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptTemplateError(f"模板数据无法解析: {e}", key=key) from e

    if not isinstance(envelope, dict) or envelope.get('format') != TEMPLATE_FORMAT:
        raise CorruptTemplateError("不是HeartID模板数据", key=key)

    version = envelope.get('format_version')
    if version != TEMPLATE_FORMAT_VERSION:
        raise CorruptTemplateError(f"不支持的模板格式版本: {version}", key=key,
                                   details={"supported": TEMPLATE_FORMAT_VERSION})

    try:
        policy = FeaturePolicy.parse(envelope['policy'])
        feature_version = int(envelope['feature_version'])
        payload = envelope['payload']
        if policy == FeaturePolicy.LIGHTWEIGHT:
            return LightweightModel.from_dict(payload, feature_version=feature_version)
        return StatisticalModel.from_dict(payload, feature_version=feature_version)
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptTemplateError(f"模板字段无效: {e}", key=key) from e
