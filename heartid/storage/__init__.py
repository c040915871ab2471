"""
存储模块
========

包含:
- 注册模型的版本化JSON序列化
- 模板存储接口及内存/文件实现
"""

from .serialization import (
    serialize_model,
    deserialize_model,
    model_to_dict,
    TEMPLATE_FORMAT,
    TEMPLATE_FORMAT_VERSION
)
from .template_store import TemplateStore, InMemoryTemplateStore, FileTemplateStore

__all__ = [
    'serialize_model',
    'deserialize_model',
    'model_to_dict',
    'TEMPLATE_FORMAT',
    'TEMPLATE_FORMAT_VERSION',
    'TemplateStore',
    'InMemoryTemplateStore',
    'FileTemplateStore'
]
