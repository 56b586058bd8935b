"""
autotable - 基于 SQLite 的轻量级自动建表 ORM

把带默认值的 dataclass 记录映射为 SQLite 表：
自动推导列类型、生成 SQL、编解码字段值，并在 schema 版本变化时迁移数据。
"""

import logging

from .core import (
    ColumnInfo,
    ColumnKind,
    DatabaseManager,
    DatabaseTable,
    EnumKind,
    MigrationResult,
    SchemaState,
    TypeRegistry,
    column,
    describe,
    describe_columns,
    unknown_enum_fields,
)
from .common.options import DatabaseOptions, SqliteConnectorOptions
from .common.log import configure_logging
from .common.exceptions import (
    AutotableException,
    ConfigurationError,
    SchemaError,
    InvalidTypeError,
    SerializationError,
    EncodingError,
    DecodingError,
    DatabaseOperationError,
    TableCreationError,
    InsertionError,
    DatabaseConnectionError,
    MigrationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '0.1.0'

__all__ = [
    # 管理器
    'DatabaseManager',
    # 记录声明
    'DatabaseTable',
    'column',
    'ColumnKind',
    'EnumKind',
    'ColumnInfo',
    'TypeRegistry',
    'describe',
    'describe_columns',
    'unknown_enum_fields',
    # 迁移
    'MigrationResult',
    'SchemaState',
    # 配置
    'DatabaseOptions',
    'SqliteConnectorOptions',
    'configure_logging',
    # 异常
    'AutotableException',
    'ConfigurationError',
    'SchemaError',
    'InvalidTypeError',
    'SerializationError',
    'EncodingError',
    'DecodingError',
    'DatabaseOperationError',
    'TableCreationError',
    'InsertionError',
    'DatabaseConnectionError',
    'MigrationError',
]
