"""
autotable 记录编解码

记录实例 <-> SQL 绑定值 / 查询结果行，均由 RecordSchema 驱动：
- bool 存储为 0/1
- 枚举映射字段存储枚举原始值（int / str）
- 其余结构化字段编码为 JSON 字节载荷（BLOB）
"""

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from ..common.exceptions import DecodingError, EncodingError, InvalidTypeError, SerializationError
from .schema import FieldDescriptor, RecordSchema, describe
from .types import ColumnKind, decode_blob, encode_blob

T = TypeVar('T')

StoredRow = Dict[str, Any]


def to_bind_values(instance: Any, schema: Optional[RecordSchema] = None) -> List[Any]:
    """
    将记录实例转换为按列顺序排列的绑定值

    Args:
        instance: 记录实例
        schema: 记录描述（默认按实例类型获取）

    Returns:
        绑定值列表，顺序与 schema.columns 一致

    Raises:
        InvalidTypeError: 实例类型与 schema 不符
        EncodingError: 任一字段编码失败（不返回部分结果）
    """
    if schema is None:
        schema = describe(type(instance))
    type_name = schema.record_type.__name__
    if not isinstance(instance, schema.record_type):
        raise InvalidTypeError(
            type(instance).__name__,
            detail=f"expected an instance of '{type_name}'"
        )
    return [
        _bind_value(type_name, f, getattr(instance, f.name))
        for f in schema.fields
    ]


def _bind_value(type_name: str, f: FieldDescriptor, value: Any) -> Any:
    if value is None:
        return None
    if f.kind is ColumnKind.BOOL:
        return 1 if value else 0
    if f.enum_kind is not None:
        if not isinstance(value, f.py_type):
            raise EncodingError(
                type_name, f.name,
                f"expected {f.py_type.__name__}, got {type(value).__name__}"
            )
        return value.value
    if f.kind is ColumnKind.BLOB:
        try:
            return encode_blob(value)
        except SerializationError as e:
            raise EncodingError(type_name, f.name, str(e)) from e
    return value


def from_stored_row(row: StoredRow, record_type: Type[T]) -> T:
    """
    将查询结果行还原为记录实例

    缺少的列使用字段默认值；非可空字段读到 NULL 时同样使用默认值。

    Args:
        row: {列名: 原始值}
        record_type: 记录类型

    Raises:
        DecodingError: 类型不匹配、枚举值未知、载荷损坏或构造失败
    """
    schema = describe(record_type)  # type: ignore[arg-type]
    type_name = schema.record_type.__name__

    kwargs: Dict[str, Any] = {}
    for f in schema.fields:
        if f.name not in row:
            continue
        raw = row[f.name]
        if raw is None:
            if f.optional:
                kwargs[f.name] = None
            continue
        kwargs[f.name] = _field_value(type_name, f, raw)

    try:
        return record_type(**kwargs)
    except (TypeError, ValueError) as e:
        raise DecodingError(type_name, detail=str(e)) from e


def from_stored_rows(rows: Iterable[StoredRow], record_type: Type[T]) -> List[T]:
    """批量还原"""
    return [from_stored_row(row, record_type) for row in rows]


def _mismatch(type_name: str, f: FieldDescriptor, raw: Any) -> DecodingError:
    return DecodingError(
        type_name, f.name,
        f"stored {type(raw).__name__} does not match {f.kind.value} column"
    )


def _field_value(type_name: str, f: FieldDescriptor, raw: Any) -> Any:
    if f.enum_kind is not None:
        if isinstance(raw, bool) or not isinstance(raw, f.enum_kind.raw_type):
            raise _mismatch(type_name, f, raw)
        try:
            return f.py_type(raw)
        except ValueError as e:
            raise DecodingError(type_name, f.name, str(e)) from e

    if f.kind is ColumnKind.TEXT:
        if not isinstance(raw, str):
            raise _mismatch(type_name, f, raw)
        return raw
    if f.kind is ColumnKind.INTEGER:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise _mismatch(type_name, f, raw)
        return raw
    if f.kind is ColumnKind.REAL:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise _mismatch(type_name, f, raw)
        return float(raw)
    if f.kind is ColumnKind.BOOL:
        if not isinstance(raw, int):
            raise _mismatch(type_name, f, raw)
        return bool(raw)

    try:
        return decode_blob(raw, f.py_type)
    except SerializationError as e:
        raise DecodingError(type_name, f.name, str(e)) from e
