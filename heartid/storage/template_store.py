"""
模板存储
========

持久化网关接口: save / load / revoke
未找到返回None (表示"未注册"), 底层读写失败抛出 StorageIOError

- InMemoryTemplateStore: 进程内字典
- FileTemplateStore: 每个键一个文件, 临时文件 + os.replace 原子替换, 仅属主可读写
"""

import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union
from loguru import logger

from ..utils.exceptions import StorageIOError

_KEY_PATTERN = re.compile(r'[^A-Za-z0-9._-]')


class TemplateStore(ABC):
    """持久化网关接口"""

    @abstractmethod
    def save(self, data: bytes, key: str) -> None:
        """原子地保存 (覆盖) 键对应的数据"""

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """读取数据; 不存在时返回None"""

    @abstractmethod
    def revoke(self, key: str) -> bool:
        """删除数据; 返回是否存在过"""

    def exists(self, key: str) -> bool:
        return self.load(key) is not None


class InMemoryTemplateStore(TemplateStore):
    """进程内存储"""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def save(self, data: bytes, key: str) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def revoke(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._data)


class FileTemplateStore(TemplateStore):
    """
    文件存储

    Usage:
        store = FileTemplateStore('~/.heartid')
        store.save(blob, 'default')
    """

    suffix = '.tpl'

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"无法创建存储目录: {self.root}", details={"error": str(e)}) from e
        logger.debug(f"文件模板存储: {self.root}")

    def path_for(self, key: str) -> Path:
        """键 -> 文件路径 (非法字符替换为下划线)"""
        if not key:
            raise ValueError("存储键不能为空")
        return self.root / (_KEY_PATTERN.sub('_', key) + self.suffix)

    def save(self, data: bytes, key: str) -> None:
        target = self.path_for(key)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.root), prefix='.tmp-', suffix=self.suffix)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, target)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageIOError(f"保存模板失败: {e}", key=key) from e

        logger.debug(f"模板已保存: {target.name} ({len(data)} 字节)")

    def load(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError(f"读取模板失败: {e}", key=key) from e

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def revoke(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"删除模板失败: {e}", key=key) from e

        logger.debug(f"模板已删除: {path.name}")
        return True
