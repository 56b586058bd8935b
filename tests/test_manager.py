"""
数据库管理器测试

覆盖范围：
- 建表与表存在性
- 插入或整行替换、清空后插入
- 批量事务原子性
- 查询与条件删除
- 用户目录隔离与生命周期
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from autotable import (
    DatabaseManager,
    DatabaseOptions,
    DatabaseTable,
    EnumKind,
    InsertionError,
    InvalidTypeError,
    SchemaState,
    TableCreationError,
    column,
)


class Role(Enum):
    GUEST = 0
    MEMBER = 1
    ADMIN = 2


class Plan(Enum):
    FREE = 'free'
    PRO = 'pro'


@dataclass
class Address:
    city: str = ''
    street: str = ''


@dataclass
class User(DatabaseTable):
    __tablename__ = 'user'
    __primary_key__ = 'id'
    __enum_mapper__ = {'role': EnumKind.INT, 'plan': EnumKind.STRING}

    id: int = 0
    name: str = ''
    age: int = 0
    balance: float = 0.0
    verified: bool = False
    role: Role = Role.GUEST
    plan: Plan = Plan.FREE
    addresses: List[Address] = field(default_factory=list)
    meta: Optional[Dict[str, int]] = None
    joined: Optional[datetime] = None


@dataclass
class Note(DatabaseTable):
    __tablename__ = 'note'

    author: str = ''
    text: str = ''


@dataclass
class BadName(DatabaseTable):
    __tablename__ = 'select'

    id: int = column(primary_key=True, default=0)


class AppDatabase(DatabaseManager):
    record_types = (User, Note)


@pytest.fixture
def db(options: DatabaseOptions):
    manager = AppDatabase(options=options)
    yield manager
    manager.close()


class TestCreateTables:
    """建表测试"""

    def test_tables_created_on_open(self, db: AppDatabase) -> None:
        assert db.exists_table('user')
        assert db.exists_table('note')
        assert not db.exists_table('missing')
        assert db.table_names() == ['note', 'user']

    def test_first_open_state(self, db: AppDatabase) -> None:
        result = db.migration_result
        assert result.state is SchemaState.UNINITIALIZED
        assert result.success
        assert result.version_persisted

    def test_create_table_sql(self, db: AppDatabase) -> None:
        assert db.create_table_sql(Note) == "CREATE TABLE IF NOT EXISTS note (author TEXT, text TEXT)"

    def test_create_table_failure(self, db: AppDatabase) -> None:
        with pytest.raises(TableCreationError) as exc_info:
            db.create_table(BadName)
        assert exc_info.value.table_name == 'select'
        assert exc_info.value.engine_error is not None

    def test_failed_creation_keeps_version_unset(self, options: DatabaseOptions) -> None:
        """建表失败时不记录版本"""
        with DatabaseManager(options=options, record_types=[User, BadName]) as manager:
            assert not manager.migration_result.success
            assert not manager.migration_result.version_persisted
            assert manager.exists_table('user')
            assert manager.version_store.get(options.version_key) is None


class TestInsertAndQuery:
    """插入与查询测试"""

    def test_round_trip(self, db: AppDatabase) -> None:
        user = User(
            id=1, name='Alice', age=30, balance=12.5, verified=True,
            role=Role.ADMIN, plan=Plan.PRO,
            addresses=[Address('Paris', 'Rue 1'), Address('Nice', 'Rue 2')],
            meta={'logins': 3},
            joined=datetime(2023, 1, 2, 3, 4, 5),
        )
        db.insert_or_update(user)
        assert db.query(User) == [user]

    def test_enum_stored_as_raw_value(self, db: AppDatabase) -> None:
        db.insert_or_update(User(id=1, role=Role.MEMBER, plan=Plan.PRO))
        rows = db.gateway.query_rows("SELECT role, plan FROM user")
        assert rows == [{'role': 1, 'plan': 'pro'}]
        assert db.query(User, where="role = 1")[0].role is Role.MEMBER

    def test_replace_not_merge(self, db: AppDatabase) -> None:
        """同主键整行替换，未给出的字段回到默认值"""
        db.insert_or_update(User(id=1, name='Alice', age=30))
        db.insert_or_update(User(id=1, name='Alicia'))
        users = db.query(User)
        assert len(users) == 1
        assert users[0].name == 'Alicia'
        assert users[0].age == 0

    def test_insert_all_and_where(self, db: AppDatabase) -> None:
        db.insert_or_update_all([User(id=i, name=f'u{i}', age=20 + i) for i in range(5)])
        assert len(db.query(User)) == 5
        assert [u.id for u in db.query(User, where="age >= 23")] == [3, 4]

    def test_clear_then_insert(self, db: AppDatabase) -> None:
        db.insert_or_update_all([Note('a', '1'), Note('a', '2')])
        db.insert_or_update(Note('b', '3'), clear=True)
        assert db.query(Note) == [Note('b', '3')]

    def test_clear_with_empty_list(self, db: AppDatabase) -> None:
        db.insert_or_update(Note('a', '1'))
        db.insert_or_update_all([], clear=True, record_type=Note)
        assert db.query(Note) == []

    def test_clear_without_record_type(self, db: AppDatabase) -> None:
        with pytest.raises(ValueError):
            db.insert_or_update_all([], clear=True)

    def test_empty_insert_is_noop(self, db: AppDatabase) -> None:
        db.insert_or_update_all([])
        assert db.query(Note) == []

    def test_mixed_record_types(self, db: AppDatabase) -> None:
        with pytest.raises(InvalidTypeError):
            db.insert_or_update_all([User(id=1), Note('a', 'b')])  # type: ignore[list-item]
        assert db.query(User) == []

    def test_batch_is_atomic(self, db: AppDatabase) -> None:
        """任一行被引擎拒绝时整批回滚"""
        db.insert_or_update(User(id=100, name='existing'))
        bad = User(id='abc', name='bad')  # type: ignore[arg-type]
        with pytest.raises(InsertionError) as exc_info:
            db.insert_or_update_all([User(id=1), bad, User(id=2)], clear=True)
        assert exc_info.value.engine_error is not None
        assert [u.id for u in db.query(User)] == [100]

    def test_overflow_rolls_back_and_later_inserts_work(self, db: AppDatabase) -> None:
        """超出 INTEGER 范围的值使整批失败，连接不残留事务"""
        with pytest.raises(InsertionError) as exc_info:
            db.insert_or_update_all([User(id=1), User(id=2 ** 70)])
        assert exc_info.value.engine_error is not None
        assert exc_info.value.engine_error.name == 'OverflowError'
        assert not db.gateway.connection.in_transaction
        assert db.query(User) == []

        db.insert_or_update(User(id=3, name='after'))
        assert [u.id for u in db.query(User)] == [3]

    def test_engine_error_not_overwritten_by_other_thread(
        self, db: AppDatabase, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """失败批次的引擎错误在其他线程执行语句之前读取"""
        original_run_batch = db.gateway.run_batch
        others: List[threading.Thread] = []

        def run_batch_with_concurrent_query(statements):  # type: ignore[no-untyped-def]
            ok = original_run_batch(statements)
            other = threading.Thread(target=db.gateway.query_rows, args=("SELECT * FROM missing",))
            other.start()
            other.join(timeout=0.2)
            others.append(other)
            return ok

        monkeypatch.setattr(db.gateway, 'run_batch', run_batch_with_concurrent_query)
        bad = User(id='abc')  # type: ignore[arg-type]
        with pytest.raises(InsertionError) as exc_info:
            db.insert_or_update(bad)
        for other in others:
            other.join()

        assert exc_info.value.engine_error is not None
        assert 'datatype mismatch' in exc_info.value.engine_error.message
        assert db.gateway.last_error is not None
        assert 'no such table' in db.gateway.last_error.message

    def test_query_missing_table(self, db: AppDatabase) -> None:
        @dataclass
        class Ghost(DatabaseTable):
            __tablename__ = 'ghost'
            id: int = 0

        assert db.query(Ghost) == []


class TestDelete:
    """删除测试"""

    def test_delete_all_keeps_table(self, db: AppDatabase) -> None:
        db.insert_or_update_all([Note('a', '1'), Note('b', '2')])
        assert db.delete_table('note')
        assert db.query(Note) == []
        assert db.exists_table('note')

    def test_delete_with_conditions(self, db: AppDatabase) -> None:
        db.insert_or_update_all([Note('a', '1'), Note('a', '2'), Note('b', '1')])
        assert db.delete_table('note', {'author': 'a', 'text': '1'})
        assert sorted((n.author, n.text) for n in db.query(Note)) == [('a', '2'), ('b', '1')]

    def test_delete_quotes_values(self, db: AppDatabase) -> None:
        db.insert_or_update_all([Note("O'Brien", 'x'), Note('c', 'y')])
        assert db.delete_table('note', {'author': "O'Brien"})
        assert db.query(Note) == [Note('c', 'y')]

    def test_delete_missing_table(self, db: AppDatabase) -> None:
        assert db.delete_table('missing') is False


class TestLocation:
    """数据库位置与生命周期测试"""

    def test_user_directory(self, options: DatabaseOptions, temp_dir: Path) -> None:
        with DatabaseManager(user_id='42', options=options) as manager:
            assert manager.db_path == temp_dir / '42DB' / options.db_name
            assert manager.db_path.exists()

    def test_default_directory(self, db: AppDatabase, temp_dir: Path) -> None:
        assert db.db_path == temp_dir / 'DB' / db.options.db_name

    def test_users_are_isolated(self, options: DatabaseOptions) -> None:
        with AppDatabase(user_id='a', options=options) as first:
            first.insert_or_update(Note('a', '1'))
        with AppDatabase(user_id='b', options=options) as second:
            assert second.query(Note) == []

    def test_data_persists_across_instances(self, options: DatabaseOptions) -> None:
        with AppDatabase(options=options) as first:
            first.insert_or_update(User(id=1, name='Alice'))
        with AppDatabase(options=options) as second:
            assert second.migration_result.state is SchemaState.UP_TO_DATE
            assert second.query(User)[0].name == 'Alice'

    def test_close(self, options: DatabaseOptions) -> None:
        manager = AppDatabase(options=options)
        manager.close()
        assert manager.gateway.is_closed
