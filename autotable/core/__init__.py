"""
autotable 核心模块

包含记录声明、类型描述、SQL 生成、值编解码、迁移和数据库管理器
"""

from .types import ColumnKind, EnumKind, TypeRegistry
from .record import DatabaseTable, column
from .schema import (
    ColumnInfo,
    FieldDescriptor,
    RecordSchema,
    describe,
    describe_columns,
    unknown_enum_fields,
)
from .migration import MigrationController, MigrationResult, SchemaState
from .manager import DatabaseManager

__all__ = [
    # 记录声明
    'DatabaseTable',
    'column',
    # 类型描述
    'ColumnKind',
    'EnumKind',
    'TypeRegistry',
    'ColumnInfo',
    'FieldDescriptor',
    'RecordSchema',
    'describe',
    'describe_columns',
    'unknown_enum_fields',
    # 迁移
    'MigrationController',
    'MigrationResult',
    'SchemaState',
    # 管理器
    'DatabaseManager',
]
