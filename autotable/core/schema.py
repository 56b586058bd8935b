"""
autotable 记录类型描述

从记录类型（dataclass）静态推导列信息。每个记录类型只解析一次并缓存，
后续建表、编码、解码都基于同一份 RecordSchema。
"""

import dataclasses
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from ..common.exceptions import InvalidTypeError, SchemaError
from .record import DatabaseTable, column_options
from .types import ColumnKind, EnumKind, TypeRegistry, enum_raw_kind, unwrap_optional


@dataclass(frozen=True)
class ColumnInfo:
    """数据库列信息"""
    name: str
    kind: ColumnKind
    is_primary_key: bool = False

    @property
    def sql_type(self) -> str:
        return self.kind.sql_type

    def definition(self) -> str:
        """建表语句中的列定义"""
        definition = f"{self.name} {self.sql_type}"
        if self.is_primary_key:
            definition += " PRIMARY KEY"
        return definition


@dataclass(frozen=True)
class FieldDescriptor:
    """记录字段描述"""
    name: str
    kind: ColumnKind
    py_type: Any  # 去掉 Optional 后的类型注解
    optional: bool = False
    enum_kind: Optional[EnumKind] = None
    is_primary_key: bool = False

    @property
    def column(self) -> ColumnInfo:
        return ColumnInfo(self.name, self.kind, self.is_primary_key)


@dataclass(frozen=True)
class RecordSchema:
    """记录类型的完整描述"""
    record_type: type
    table_name: str
    primary_key: Optional[str]
    fields: Tuple[FieldDescriptor, ...]

    @property
    def columns(self) -> List[ColumnInfo]:
        return [f.column for f in self.fields]

    @property
    def column_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> FieldDescriptor:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)


_schema_cache: Dict[type, RecordSchema] = {}
_cache_lock = threading.Lock()


def describe(record_type: Type[DatabaseTable]) -> RecordSchema:
    """
    获取记录类型的描述（带缓存）

    Args:
        record_type: 继承 DatabaseTable 的 dataclass

    Returns:
        RecordSchema

    Raises:
        InvalidTypeError: 不是合法记录类型，或存在无法映射的字段
        SchemaError: 缺少表名，或声明了多个主键
    """
    schema = _schema_cache.get(record_type)
    if schema is not None:
        return schema
    with _cache_lock:
        schema = _schema_cache.get(record_type)
        if schema is None:
            schema = _build_schema(record_type)
            _schema_cache[record_type] = schema
    return schema


def describe_columns(record_type: Type[DatabaseTable]) -> List[ColumnInfo]:
    """按声明顺序返回记录类型的列信息"""
    return describe(record_type).columns


def unknown_enum_fields(record_type: Type[DatabaseTable]) -> List[str]:
    """返回 __enum_mapper__ 中不对应任何字段的键（这些键不生效）"""
    names = {f.name for f in dataclasses.fields(record_type)}
    return sorted(k for k in record_type.__enum_mapper__ if k not in names)


def clear_schema_cache() -> None:
    """清空描述缓存"""
    with _cache_lock:
        _schema_cache.clear()


def _build_schema(record_type: Any) -> RecordSchema:
    type_name = getattr(record_type, '__name__', repr(record_type))

    if not isinstance(record_type, type) or not issubclass(record_type, DatabaseTable):
        raise InvalidTypeError(type_name, detail="record types must subclass DatabaseTable")
    if not dataclasses.is_dataclass(record_type):
        raise InvalidTypeError(type_name, detail="record types must be dataclasses")

    table_name = record_type.__tablename__
    if not table_name:
        raise SchemaError(f"Record type '{type_name}' does not declare __tablename__")

    try:
        record_type.init_dummy_instance()
    except TypeError as e:
        raise InvalidTypeError(type_name, detail=f"cannot build zero-value instance ({e})") from e

    try:
        hints = typing.get_type_hints(record_type)
    except NameError as e:
        raise InvalidTypeError(type_name, detail=f"unresolved annotation ({e})") from e

    persisted = [
        f for f in dataclasses.fields(record_type)
        if f.init and not column_options(f).get('transient', False)
    ]
    field_names = {f.name for f in persisted}

    pk_names = [f.name for f in persisted if column_options(f).get('primary_key', False)]
    declared_pk = record_type.__primary_key__
    if declared_pk in field_names and declared_pk not in pk_names:
        pk_names.append(declared_pk)
    if len(pk_names) > 1:
        raise SchemaError(
            f"Record type '{type_name}' declares multiple primary keys: {', '.join(pk_names)}"
        )
    primary_key = pk_names[0] if pk_names else None

    descriptors = tuple(
        _describe_field(
            type_name,
            f.name,
            hints[f.name],
            record_type.__enum_mapper__,
            f.name == primary_key
        )
        for f in persisted
    )
    return RecordSchema(record_type, table_name, primary_key, descriptors)


def _describe_field(
    type_name: str,
    name: str,
    hint: Any,
    enum_mapper: Dict[str, EnumKind],
    is_primary_key: bool
) -> FieldDescriptor:
    py_type, optional = unwrap_optional(hint)

    kind = TypeRegistry.primitive_kind(py_type)
    if kind is not None:
        return FieldDescriptor(name, kind, py_type, optional, None, is_primary_key)

    if not TypeRegistry.is_structural(py_type):
        raise InvalidTypeError(type_name, name, f"cannot map {hint!r} to a column")

    enum_kind = enum_mapper.get(name)
    if enum_kind is None:
        return FieldDescriptor(name, ColumnKind.BLOB, py_type, optional, None, is_primary_key)

    # 枚举映射字段：必须是原始值类型与映射一致的 Enum
    if not (isinstance(py_type, type) and issubclass(py_type, Enum)):
        raise InvalidTypeError(type_name, name, f"enum mapping requires an Enum type, got {hint!r}")
    if enum_raw_kind(py_type) is not enum_kind:
        raise InvalidTypeError(
            type_name, name,
            f"{py_type.__name__} raw values are not {enum_kind.raw_type.__name__}"
        )
    return FieldDescriptor(name, enum_kind.column_kind, py_type, optional, enum_kind, is_primary_key)
