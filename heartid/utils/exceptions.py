"""
异常层次结构
============

为各类错误提供带结构化信息的专用异常类型
"""

from typing import Any, Dict, Optional


class HeartIDError(Exception):
    """所有HeartID错误的基类"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典 (用于日志和CLI输出)"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class InsufficientDataError(HeartIDError):
    """样本/心拍数量不足"""

    def __init__(
        self,
        message: str,
        required: int = 0,
        available: int = 0,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="INSUFFICIENT_DATA",
            details={"required": required, "available": available, **(details or {})}
        )
        self.required = required
        self.available = available


class PolicyMismatchError(HeartIDError):
    """特征策略或特征维度与注册模型不一致"""

    def __init__(
        self,
        message: str,
        expected: str = "unknown",
        actual: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="POLICY_MISMATCH",
            details={"expected": expected, "actual": actual, **(details or {})}
        )


class TrainingError(HeartIDError):
    """注册训练过程中的错误"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="TRAINING_ERROR", details=details)


class StorageError(HeartIDError):
    """持久化存储错误基类"""

    def __init__(
        self,
        message: str,
        key: str = "",
        code: str = "STORAGE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            details={"key": key, **(details or {})}
        )
        self.key = key


class CorruptTemplateError(StorageError):
    """模板数据损坏或格式版本不受支持"""

    def __init__(self, message: str, key: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, key=key, code="CORRUPT_TEMPLATE", details=details)


class StorageIOError(StorageError):
    """底层存储读写失败"""

    def __init__(self, message: str, key: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, key=key, code="STORAGE_IO_ERROR", details=details)


class CaptureError(HeartIDError):
    """采集阶段错误基类"""

    def __init__(
        self,
        message: str,
        code: str = "CAPTURE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, code=code, details=details)


class CaptureInProgressError(CaptureError):
    """上一个采集窗口尚未结束"""

    def __init__(self, message: str = "已有采集正在进行", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CAPTURE_IN_PROGRESS", details=details)


class SensorError(CaptureError):
    """传感器协作方报告的错误"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SENSOR_ERROR", details=details)


class ConfigurationError(HeartIDError):
    """配置文件或配置项无效"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CONFIGURATION_ERROR", details=details)
