"""
autotable 异常定义
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EngineErrorInfo:
    """SQLite 引擎错误信息（错误码、错误名、错误消息）"""
    code: Optional[int]
    name: Optional[str]
    message: str

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"[{self.name or self.code}] {self.message}"


class AutotableException(Exception):
    """autotable 基础异常类"""

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（便于日志记录）"""
        return {
            'error': type(self).__name__,
            'message': str(self),
        }


class ConfigurationError(AutotableException):
    """配置异常"""


class SchemaError(ConfigurationError):
    """记录类型声明异常（缺少表名、多个主键等）"""


class InvalidTypeError(AutotableException):
    """字段类型无法映射为列类型"""
    def __init__(self, type_name: str, field_name: Optional[str] = None, detail: str = ''):
        self.type_name = type_name
        self.field_name = field_name
        self.detail = detail
        if field_name:
            message = f"Unsupported type for field '{field_name}' of '{type_name}'"
        else:
            message = f"Unsupported record type '{type_name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SerializationError(AutotableException):
    """序列化/反序列化异常"""


class EncodingError(SerializationError):
    """记录编码为绑定值失败"""
    def __init__(self, type_name: str, field_name: str, detail: str = ''):
        self.type_name = type_name
        self.field_name = field_name
        message = f"Failed to encode field '{field_name}' of '{type_name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DecodingError(SerializationError):
    """数据行还原为记录失败"""
    def __init__(self, type_name: str, field_name: Optional[str] = None, detail: str = ''):
        self.type_name = type_name
        self.field_name = field_name
        if field_name:
            message = f"Failed to decode field '{field_name}' of '{type_name}'"
        else:
            message = f"Failed to decode row into '{type_name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DatabaseOperationError(AutotableException):
    """数据库执行失败（携带引擎错误信息）"""
    action = 'operation'

    def __init__(self, table_name: str, engine_error: Optional[EngineErrorInfo] = None):
        self.table_name = table_name
        self.engine_error = engine_error
        message = f"Table '{table_name}' {self.action} failed"
        if engine_error is not None:
            message = f"{message}: {engine_error}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['table_name'] = self.table_name
        if self.engine_error is not None:
            data['engine_code'] = self.engine_error.code
            data['engine_message'] = self.engine_error.message
        return data


class TableCreationError(DatabaseOperationError):
    """建表失败"""
    action = 'creation'


class InsertionError(DatabaseOperationError):
    """批量插入事务失败（已整体回滚）"""
    action = 'insertion'


class DatabaseConnectionError(AutotableException):
    """数据库文件无法打开"""


class MigrationError(AutotableException):
    """数据迁移异常"""
