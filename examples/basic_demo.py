"""
autotable 基础演示

展示：
- 用 dataclass 声明记录类型
- 打开数据库（自动建表）
- 插入或更新、查询、条件删除
- schema 版本升级时保留公共列数据
"""

import sys
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import List
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from autotable import DatabaseManager, DatabaseOptions, DatabaseTable, EnumKind, configure_logging


class Role(Enum):
    GUEST = 0
    ADMIN = 1


@dataclass
class Address:
    city: str = ''
    street: str = ''


@dataclass
class User(DatabaseTable):
    __tablename__ = 'user'
    __primary_key__ = 'id'
    __enum_mapper__ = {'role': EnumKind.INT}

    id: int = 0
    name: str = ''
    age: int = 0
    role: Role = Role.GUEST
    addresses: List[Address] = field(default_factory=list)


@dataclass
class UserV2(DatabaseTable):
    __tablename__ = 'user'
    __primary_key__ = 'id'
    __enum_mapper__ = {'role': EnumKind.INT}

    id: int = 0
    name: str = ''
    role: Role = Role.GUEST
    email: str = 'unknown@example.com'


class AppDatabase(DatabaseManager):
    record_types = (User,)


configure_logging(level='WARNING')

print("=" * 60)
print("autotable 基础演示")
print("=" * 60)

cache_dir = tempfile.mkdtemp(prefix='autotable_demo_')

# ============================================================
# 1. 打开数据库并写入
# ============================================================
print("\n1. 打开数据库并写入")

with AppDatabase(user_id='42', options=DatabaseOptions(cache_dir=cache_dir)) as db:
    print(f"   数据库文件: {db.db_path}")
    print(f"   建表语句: {db.create_table_sql(User)}")

    db.insert_or_update_all([
        User(id=1, name='Alice', age=30, role=Role.ADMIN, addresses=[Address('Paris', 'Rue 1')]),
        User(id=2, name='Bob', age=25),
        User(id=3, name='Charlie', age=35),
    ])

    # ============================================================
    # 2. 查询
    # ============================================================
    print("\n2. 查询")
    for user in db.query(User, where="age >= 30"):
        print(f"   {user.name}, {user.age}岁, {user.role.name}, {user.addresses}")

    # ============================================================
    # 3. 整行替换与条件删除
    # ============================================================
    print("\n3. 整行替换与条件删除")
    db.insert_or_update(User(id=2, name='Bobby'))
    print(f"   替换后: {db.query(User, where='id = 2')}")
    db.delete_table('user', {'name': 'Charlie'})
    print(f"   删除后剩余: {[u.name for u in db.query(User)]}")

# ============================================================
# 4. schema 升级
# ============================================================
print("\n4. schema 升级 (1.0 -> 2.0)")

options_v2 = DatabaseOptions(cache_dir=cache_dir, schema_version='2.0')
with DatabaseManager(user_id='42', options=options_v2, record_types=[UserV2]) as db:
    result = db.migration_result
    print(f"   状态: {result.state.value}, 成功: {result.success}")
    print(f"   复制的列: {result.copied}")
    for user in db.query(UserV2):
        print(f"   {user.name}, {user.role.name}, {user.email}")

DatabaseManager.delete_folders_containing_db(DatabaseOptions(cache_dir=cache_dir))

print("\n" + "=" * 60)
print("演示完成")
print("=" * 60)
