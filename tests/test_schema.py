"""
记录类型描述测试

测试方法：
- 等价类划分：基础类型、结构化类型、枚举映射、不支持的类型
- 错误推断：缺少表名、多个主键、无默认值字段

覆盖范围：
- 列按声明顺序排列
- 主键识别（__primary_key__ 与 column(primary_key=True)）
- transient 字段不生成列
- 描述缓存
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import pytest

from autotable import (
    ColumnInfo,
    ColumnKind,
    DatabaseTable,
    EnumKind,
    InvalidTypeError,
    SchemaError,
    column,
    describe,
    describe_columns,
    unknown_enum_fields,
)


class Role(Enum):
    GUEST = 0
    ADMIN = 1


class Status(Enum):
    ACTIVE = 'active'
    BANNED = 'banned'


@dataclass
class Tag:
    name: str = ''


@dataclass
class Person(DatabaseTable):
    __tablename__ = 'person'
    __primary_key__ = 'id'

    id: int = 0
    name: str = ''
    score: float = 0.0
    active: bool = False


@dataclass
class Member(DatabaseTable):
    __tablename__ = 'member'
    __primary_key__ = 'id'
    __enum_mapper__ = {'role': EnumKind.INT, 'status': EnumKind.STRING, 'missing': EnumKind.INT}

    id: int = 0
    role: Role = Role.GUEST
    status: Status = Status.ACTIVE
    tags: List[Tag] = field(default_factory=list)
    extra: Optional[Dict[str, int]] = None
    nickname: Optional[str] = None


class TestDescribePrimitives:
    """基础类型字段描述测试"""

    def test_columns_in_declaration_order(self) -> None:
        """列按声明顺序排列，类型正确"""
        assert describe_columns(Person) == [
            ColumnInfo('id', ColumnKind.INTEGER, True),
            ColumnInfo('name', ColumnKind.TEXT),
            ColumnInfo('score', ColumnKind.REAL),
            ColumnInfo('active', ColumnKind.BOOL),
        ]

    def test_bool_column_stored_as_integer(self) -> None:
        schema = describe(Person)
        assert schema.get_field('active').column.sql_type == 'INTEGER'

    def test_schema_properties(self) -> None:
        schema = describe(Person)
        assert schema.table_name == 'person'
        assert schema.primary_key == 'id'
        assert schema.column_names == ['id', 'name', 'score', 'active']

    def test_describe_is_cached(self) -> None:
        """同一类型只解析一次"""
        assert describe(Person) is describe(Person)


class TestDescribeStructural:
    """结构化字段与枚举映射测试"""

    def test_enum_mapped_columns(self) -> None:
        schema = describe(Member)
        role = schema.get_field('role')
        status = schema.get_field('status')
        assert role.kind is ColumnKind.INTEGER
        assert role.enum_kind is EnumKind.INT
        assert status.kind is ColumnKind.TEXT
        assert status.enum_kind is EnumKind.STRING

    def test_structural_fields_are_blob(self) -> None:
        schema = describe(Member)
        assert schema.get_field('tags').kind is ColumnKind.BLOB
        extra = schema.get_field('extra')
        assert extra.kind is ColumnKind.BLOB
        assert extra.optional is True

    def test_optional_primitive(self) -> None:
        nickname = describe(Member).get_field('nickname')
        assert nickname.kind is ColumnKind.TEXT
        assert nickname.optional is True

    def test_unmapped_enum_is_blob(self) -> None:
        @dataclass
        class Ticket(DatabaseTable):
            __tablename__ = 'ticket'
            role: Role = Role.GUEST

        assert describe(Ticket).get_field('role').kind is ColumnKind.BLOB

    def test_unknown_enum_fields(self) -> None:
        """映射中不对应字段的键被报告"""
        assert unknown_enum_fields(Member) == ['missing']
        assert unknown_enum_fields(Person) == []

    def test_mapping_on_primitive_is_inert(self) -> None:
        """基础类型字段上的枚举映射不生效"""
        @dataclass
        class Counter(DatabaseTable):
            __tablename__ = 'counter'
            __enum_mapper__ = {'value': EnumKind.STRING}
            value: int = 0

        assert describe(Counter).get_field('value').kind is ColumnKind.INTEGER


class TestPrimaryKey:
    """主键识别测试"""

    def test_column_primary_key(self) -> None:
        @dataclass
        class Account(DatabaseTable):
            __tablename__ = 'account'
            uid: str = column(primary_key=True, default='')
            email: str = ''

        schema = describe(Account)
        assert schema.primary_key == 'uid'
        assert schema.columns[0].definition() == 'uid TEXT PRIMARY KEY'

    def test_no_primary_key(self) -> None:
        @dataclass
        class Event(DatabaseTable):
            __tablename__ = 'event'
            message: str = ''

        schema = describe(Event)
        assert schema.primary_key is None
        assert not any(c.is_primary_key for c in schema.columns)

    def test_multiple_primary_keys(self) -> None:
        @dataclass
        class Broken(DatabaseTable):
            __tablename__ = 'broken'
            __primary_key__ = 'a'
            a: int = 0
            b: int = column(primary_key=True, default=0)

        with pytest.raises(SchemaError, match='multiple primary keys'):
            describe(Broken)

    def test_transient_field_excluded(self) -> None:
        @dataclass
        class Cached(DatabaseTable):
            __tablename__ = 'cached'
            id: int = 0
            scratch: set = column(transient=True, default_factory=set)

        assert describe(Cached).column_names == ['id']


class TestInvalidRecordTypes:
    """非法记录类型测试"""

    def test_unsupported_field_type(self) -> None:
        @dataclass
        class WithSet(DatabaseTable):
            __tablename__ = 'with_set'
            items: set = field(default_factory=set)

        with pytest.raises(InvalidTypeError) as exc_info:
            describe(WithSet)
        assert exc_info.value.field_name == 'items'

    def test_enum_mapping_raw_type_mismatch(self) -> None:
        @dataclass
        class Wrong(DatabaseTable):
            __tablename__ = 'wrong'
            __enum_mapper__ = {'status': EnumKind.INT}
            status: Status = Status.ACTIVE

        with pytest.raises(InvalidTypeError):
            describe(Wrong)

    def test_enum_mapping_on_non_enum(self) -> None:
        @dataclass
        class NotEnum(DatabaseTable):
            __tablename__ = 'not_enum'
            __enum_mapper__ = {'tags': EnumKind.INT}
            tags: List[int] = field(default_factory=list)

        with pytest.raises(InvalidTypeError):
            describe(NotEnum)

    def test_missing_tablename(self) -> None:
        @dataclass
        class NoTable(DatabaseTable):
            id: int = 0

        with pytest.raises(SchemaError):
            describe(NoTable)

    def test_field_without_default(self) -> None:
        """无法构造零值实例"""
        @dataclass
        class NoDefault(DatabaseTable):
            __tablename__ = 'no_default'
            id: int

        with pytest.raises(InvalidTypeError):
            describe(NoDefault)

    def test_not_a_dataclass(self) -> None:
        class Plain(DatabaseTable):
            __tablename__ = 'plain'

        with pytest.raises(InvalidTypeError):
            describe(Plain)

    def test_not_a_record_type(self) -> None:
        @dataclass
        class Loose:
            id: int = 0

        with pytest.raises(InvalidTypeError):
            describe(Loose)  # type: ignore[arg-type]


class TestSchemaCache:
    """描述缓存测试"""

    def test_clear_schema_cache(self) -> None:
        from autotable.core.schema import clear_schema_cache

        first = describe(Person)
        clear_schema_cache()
        second = describe(Person)
        assert first is not second
        assert first == second
