"""
autotable 类型系统

定义列类型、枚举映射类型、Python 类型到列类型的分类规则，
以及 BLOB 字段的结构化（JSON）编解码
"""

import base64
import dataclasses
import json
import types
import typing
from datetime import datetime, date, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from ..common.exceptions import SerializationError


class ColumnKind(Enum):
    """列类型"""
    TEXT = 'text'
    INTEGER = 'integer'
    REAL = 'real'
    # bool 单独处理，存储为 INTEGER 0/1
    BOOL = 'bool'
    BLOB = 'blob'

    @property
    def sql_type(self) -> str:
        """SQLite 存储类型"""
        return _SQL_TYPES[self]


_SQL_TYPES: Dict[ColumnKind, str] = {
    ColumnKind.TEXT: 'TEXT',
    ColumnKind.INTEGER: 'INTEGER',
    ColumnKind.REAL: 'REAL',
    ColumnKind.BOOL: 'INTEGER',
    ColumnKind.BLOB: 'BLOB',
}


class EnumKind(Enum):
    """枚举字段的原始值类型（用于 __enum_mapper__）"""
    INT = 'int'
    STRING = 'string'

    @property
    def column_kind(self) -> ColumnKind:
        return ColumnKind.INTEGER if self is EnumKind.INT else ColumnKind.TEXT

    @property
    def raw_type(self) -> type:
        return int if self is EnumKind.INT else str


_UNION_ORIGINS = (Union, types.UnionType)
_NONE_TYPE = type(None)


def unwrap_optional(hint: Any) -> Tuple[Any, bool]:
    """
    拆解 Optional[X] / X | None

    Returns:
        (内部类型, 是否可空)；多成员 Union 原样返回
    """
    if typing.get_origin(hint) in _UNION_ORIGINS:
        args = typing.get_args(hint)
        non_none = [arg for arg in args if arg is not _NONE_TYPE]
        if len(non_none) == 1 and len(non_none) < len(args):
            return non_none[0], True
    return hint, False


def enum_raw_kind(enum_type: Type[Enum]) -> Optional[EnumKind]:
    """
    推断枚举的原始值类型

    所有成员值为 int（不含 bool）时为 INT，全部为 str 时为 STRING，否则为 None
    """
    values = [member.value for member in enum_type]
    if not values:
        return None
    if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return EnumKind.INT
    if all(isinstance(v, str) for v in values):
        return EnumKind.STRING
    return None


# ========== 结构化序列化函数 ==========

def _serialize_bytes(value: Any) -> str:
    """序列化 bytes 为 base64 字符串"""
    return base64.b64encode(value).decode('ascii')


def _serialize_datetime(value: Any) -> str:
    """序列化 datetime 为 ISO 格式字符串"""
    return value.isoformat()


def _serialize_date(value: Any) -> str:
    """序列化 date 为 ISO 格式字符串"""
    return value.isoformat()


def _serialize_timedelta(value: Any) -> float:
    """序列化 timedelta 为总秒数"""
    return value.total_seconds()


# ========== 结构化反序列化函数 ==========

def _deserialize_bytes(value: Any) -> bytes:
    """反序列化 bytes"""
    if isinstance(value, bytes):
        return value
    return base64.b64decode(value)


def _deserialize_datetime(value: Any) -> datetime:
    """反序列化 datetime"""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _deserialize_date(value: Any) -> date:
    """反序列化 date"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return date.fromisoformat(value)


def _deserialize_timedelta(value: Any) -> timedelta:
    """反序列化 timedelta"""
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=float(value))


class TypeRegistry:
    """类型注册表"""

    # 基础类型 -> 列类型（按类型精确匹配，bool/Enum 子类不会误判为 int/str）
    _primitive_kinds: Dict[type, ColumnKind] = {
        str: ColumnKind.TEXT,
        int: ColumnKind.INTEGER,
        float: ColumnKind.REAL,
        bool: ColumnKind.BOOL,
    }

    # 可结构化编码的叶子类型（顺序敏感：datetime 必须在 date 之前）
    _serializers: Dict[type, Callable[[Any], Any]] = {
        bytes: _serialize_bytes,
        datetime: _serialize_datetime,
        date: _serialize_date,
        timedelta: _serialize_timedelta,
    }

    _deserializers: Dict[type, Callable[[Any], Any]] = {
        bytes: _deserialize_bytes,
        datetime: _deserialize_datetime,
        date: _deserialize_date,
        timedelta: _deserialize_timedelta,
    }

    @classmethod
    def primitive_kind(cls, py_type: Any) -> Optional[ColumnKind]:
        """获取基础类型对应的列类型，非基础类型返回 None"""
        if not isinstance(py_type, type):
            return None
        return cls._primitive_kinds.get(py_type)

    @classmethod
    def is_structural(cls, py_type: Any) -> bool:
        """
        判断类型能否结构化编码（存储为 BLOB 或按枚举映射存储）

        支持：Enum 子类、dataclass、list/dict/tuple（含泛型参数）以及已注册的叶子类型
        """
        origin = typing.get_origin(py_type)
        if origin in (list, dict, tuple):
            return True
        if not isinstance(py_type, type):
            return False
        if py_type in (list, dict, tuple):
            return True
        if issubclass(py_type, Enum) or dataclasses.is_dataclass(py_type):
            return True
        return py_type in cls._serializers

    @classmethod
    def register(
        cls,
        py_type: type,
        serializer: Callable[[Any], Any],
        deserializer: Callable[[Any], Any]
    ) -> None:
        """
        注册自定义结构化类型

        Args:
            py_type: Python 类型
            serializer: 值 -> JSON 兼容值
            deserializer: JSON 兼容值 -> 值
        """
        cls._serializers[py_type] = serializer
        cls._deserializers[py_type] = deserializer

    @classmethod
    def get_serializer(cls, value: Any) -> Optional[Callable[[Any], Any]]:
        for py_type, serializer in cls._serializers.items():
            if isinstance(value, py_type):
                return serializer
        return None

    @classmethod
    def get_deserializer(cls, py_type: Any) -> Optional[Callable[[Any], Any]]:
        return cls._deserializers.get(py_type)


# ========== BLOB 结构化编解码 ==========

def _structure_key(key: Any) -> Any:
    """字典键转换为 JSON 兼容键"""
    if isinstance(key, Enum):
        key = key.value
    if isinstance(key, (str, int, float, bool)) or key is None:
        return key
    raise SerializationError(f"Unsupported dict key type: {type(key).__name__}")


def to_structure(value: Any) -> Any:
    """
    将值转换为 JSON 兼容结构

    Enum 使用原始值，dataclass 转为字典，bytes/日期类型使用注册的序列化函数
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return to_structure(value.value)
    if isinstance(value, (str, int, float, bool)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_structure(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    serializer = TypeRegistry.get_serializer(value)
    if serializer is not None:
        return serializer(value)
    if isinstance(value, (list, tuple)):
        return [to_structure(item) for item in value]
    if isinstance(value, dict):
        return {_structure_key(k): to_structure(v) for k, v in value.items()}
    raise SerializationError(f"Type '{type(value).__name__}' is not structurally encodable")


def _key_from_structure(key: Any, key_type: Any) -> Any:
    """从 JSON 字符串键还原字典键"""
    if key_type is Any or key_type is str:
        return key
    # json.dumps 把 bool 键写成 "true" / "false"
    if key_type is bool:
        if key not in ('true', 'false'):
            raise SerializationError(f"Invalid bool key: {key!r}")
        return key == 'true'
    if key_type is int:
        return int(key)
    if key_type is float:
        return float(key)
    if isinstance(key_type, type) and issubclass(key_type, Enum):
        try:
            return key_type(key)
        except ValueError:
            return key_type(int(key))
    return key


def _expect(data: Any, expected: Union[type, Tuple[type, ...]], hint: Any) -> None:
    if not isinstance(data, expected):
        raise SerializationError(
            f"Expected {hint!r}, got {type(data).__name__}"
        )


def from_structure(data: Any, hint: Any) -> Any:
    """
    按类型注解从 JSON 兼容结构还原值

    Args:
        data: json.loads 得到的数据
        hint: 目标类型注解

    Raises:
        SerializationError: 数据与类型注解不匹配
    """
    hint, optional = unwrap_optional(hint)
    if data is None:
        if optional or hint is Any:
            return None
        raise SerializationError(f"Null value for non-optional type {hint!r}")
    if hint is Any or hint is object:
        return data

    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin is list or hint is list:
        _expect(data, list, hint)
        item_type = args[0] if args else Any
        return [from_structure(item, item_type) for item in data]

    if origin is tuple or hint is tuple:
        _expect(data, list, hint)
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            item_type = args[0] if args else Any
            return tuple(from_structure(item, item_type) for item in data)
        if len(args) != len(data):
            raise SerializationError(f"Expected {len(args)} items for {hint!r}, got {len(data)}")
        return tuple(from_structure(item, item_type) for item, item_type in zip(data, args))

    if origin is dict or hint is dict:
        _expect(data, dict, hint)
        key_type, value_type = args if args else (Any, Any)
        return {
            _key_from_structure(k, key_type): from_structure(v, value_type)
            for k, v in data.items()
        }

    if isinstance(hint, type):
        if issubclass(hint, Enum):
            try:
                return hint(data)
            except ValueError as e:
                raise SerializationError(str(e)) from e
        if dataclasses.is_dataclass(hint):
            _expect(data, dict, hint)
            field_hints = typing.get_type_hints(hint)
            kwargs = {
                f.name: from_structure(data[f.name], field_hints[f.name])
                for f in dataclasses.fields(hint)
                if f.init and f.name in data
            }
            try:
                return hint(**kwargs)
            except TypeError as e:
                raise SerializationError(f"Cannot build {hint.__name__}: {e}") from e
        deserializer = TypeRegistry.get_deserializer(hint)
        if deserializer is not None:
            try:
                return deserializer(data)
            except (TypeError, ValueError) as e:
                raise SerializationError(f"Cannot decode {hint.__name__}: {e}") from e
        if hint is bool:
            _expect(data, bool, hint)
            return data
        if hint is int:
            if isinstance(data, bool) or not isinstance(data, int):
                raise SerializationError(f"Expected int, got {type(data).__name__}")
            return data
        if hint is float:
            if isinstance(data, bool) or not isinstance(data, (int, float)):
                raise SerializationError(f"Expected float, got {type(data).__name__}")
            return float(data)
        if hint is str:
            _expect(data, str, hint)
            return data

    raise SerializationError(f"Unsupported type hint: {hint!r}")


def encode_blob(value: Any) -> bytes:
    """编码为自描述的 JSON 字节载荷"""
    try:
        return json.dumps(to_structure(value), ensure_ascii=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to encode payload: {e}") from e


def decode_blob(data: Any, hint: Any) -> Any:
    """
    解码 JSON 字节载荷

    Args:
        data: 存储的 BLOB（bytes / memoryview / str）
        hint: 字段类型注解
    """
    if isinstance(data, (bytearray, memoryview)):
        data = bytes(data)
    if isinstance(data, str):
        data = data.encode('utf-8')
    if not isinstance(data, bytes):
        raise SerializationError(f"Expected blob payload, got {type(data).__name__}")
    try:
        structure = json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"Corrupt payload: {e}") from e
    return from_structure(structure, hint)


__all__: List[str] = [
    'ColumnKind',
    'EnumKind',
    'TypeRegistry',
    'unwrap_optional',
    'enum_raw_kind',
    'to_structure',
    'from_structure',
    'encode_blob',
    'decode_blob',
]
