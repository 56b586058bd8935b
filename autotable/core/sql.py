"""
autotable SQL 语句生成

纯函数，不做任何 I/O。表名与列名直接拼接（来自记录类型声明）；
条件值以引号字面量拼接，调用方不得传入不可信数据。
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..common.exceptions import SchemaError
from .schema import ColumnInfo


def create_table_sql(table_name: str, columns: Sequence[ColumnInfo]) -> str:
    """
    建表语句

    Args:
        table_name: 表名
        columns: 按声明顺序排列的列信息

    Raises:
        SchemaError: 多于一个主键列
    """
    pk_columns = [c.name for c in columns if c.is_primary_key]
    if len(pk_columns) > 1:
        raise SchemaError(f"Table '{table_name}' has multiple primary keys: {', '.join(pk_columns)}")
    definitions = ", ".join(c.definition() for c in columns)
    return f"CREATE TABLE IF NOT EXISTS {table_name} ({definitions})"


def insert_or_replace_sql(table_name: str, column_names: Sequence[str]) -> str:
    """
    按主键整行替换的插入语句

    注意是替换而不是合并：同主键的旧行被整行删除，未给出的列回到默认值。
    """
    columns = ", ".join(column_names)
    placeholders = ", ".join("?" for _ in column_names)
    return f"INSERT OR REPLACE INTO {table_name} ({columns}) VALUES ({placeholders})"


def select_sql(table_name: str, where: Optional[str] = None) -> str:
    """查询语句，where 为原样拼接的条件文本"""
    sql = f"SELECT * FROM {table_name}"
    if where:
        sql += f" WHERE {where}"
    return sql


def delete_all_sql(table_name: str) -> str:
    """清空表数据"""
    return f"DELETE FROM {table_name}"


def quote_literal(value: Any) -> str:
    """转为单引号字面量（内部单引号加倍）"""
    if isinstance(value, bool):
        value = int(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def delete_where_sql(table_name: str, conditions: Optional[Mapping[str, Any]] = None) -> str:
    """
    按等值条件删除

    Args:
        table_name: 表名
        conditions: {列名: 值}，多个条件以 AND 连接；为空时删除全部数据
    """
    if not conditions:
        return delete_all_sql(table_name)
    clauses = " AND ".join(f"{key} = {quote_literal(value)}" for key, value in conditions.items())
    return f"DELETE FROM {table_name} WHERE {clauses}"


def table_exists_sql() -> str:
    return "SELECT count(*) FROM sqlite_master WHERE type='table' AND name=?"


def list_tables_sql() -> str:
    """列出用户表（排除 sqlite_ 内部表）"""
    return (
        "SELECT name FROM sqlite_master WHERE type='table' "
        "AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' ORDER BY name"
    )


def table_info_sql(table_name: str) -> str:
    return f"PRAGMA table_info({table_name})"


def count_rows_sql(table_name: str) -> str:
    return f"SELECT count(*) FROM {table_name}"


def rename_table_sql(old_name: str, new_name: str) -> str:
    return f"ALTER TABLE {old_name} RENAME TO {new_name}"


def drop_table_sql(table_name: str) -> str:
    return f"DROP TABLE IF EXISTS {table_name}"


def copy_rows_sql(
    target: str,
    source: str,
    column_names: Iterable[str],
    replace: bool = False
) -> str:
    """
    在两张表之间复制公共列

    Args:
        target: 目标表
        source: 来源表
        column_names: 复制的列
        replace: 是否使用 INSERT OR REPLACE（同主键时覆盖）
    """
    columns: List[str] = list(column_names)
    cols = ", ".join(columns)
    verb = "INSERT OR REPLACE INTO" if replace else "INSERT INTO"
    return f"{verb} {target}({cols}) SELECT {cols} FROM {source}"
