"""
autotable 表目录查询

基于 sqlite_master 和 PRAGMA table_info 的表存在性、表名、列名查询。
"""

import re
from typing import List, Optional, Tuple

from ..backends.gateway import ExecutionGateway
from . import sql

BACKUP_SUFFIX = '_bak'
_BACKUP_PATTERN = re.compile(r'^(?P<base>.+)_bak(?P<attempt>\d*)$')


def exists_table(gateway: ExecutionGateway, table_name: str) -> bool:
    """判断表是否存在"""
    rows = gateway.query_rows(sql.table_exists_sql(), (table_name,))
    if not rows:
        return False
    return int(next(iter(rows[0].values())) or 0) > 0


def list_tables(gateway: ExecutionGateway, include_backups: bool = True) -> List[str]:
    """
    列出用户表

    Args:
        gateway: 执行网关
        include_backups: 是否包含迁移备份表（*_bak, *_bakN）
    """
    names = [row['name'] for row in gateway.query_rows(sql.list_tables_sql())]
    if include_backups:
        return names
    return [name for name in names if split_backup_name(name) is None]


def split_backup_name(table_name: str) -> Optional[Tuple[str, int]]:
    """
    解析备份表名

    Returns:
        (原表名, 尝试序号)，'users_bak' -> ('users', 0)，'users_bak2' -> ('users', 2)；
        非备份表返回 None
    """
    match = _BACKUP_PATTERN.match(table_name)
    if match is None:
        return None
    attempt = match.group('attempt')
    return match.group('base'), int(attempt) if attempt else 0


def backup_table_name(table_name: str, attempt: int = 0) -> str:
    """备份表名：首次为 <name>_bak，之后为 <name>_bak<attempt>"""
    suffix = str(attempt) if attempt else ''
    return f"{table_name}{BACKUP_SUFFIX}{suffix}"


def table_columns(gateway: ExecutionGateway, table_name: str) -> List[str]:
    """按定义顺序返回列名"""
    return [row['name'] for row in gateway.query_rows(sql.table_info_sql(table_name))]


def table_primary_key(gateway: ExecutionGateway, table_name: str) -> Optional[str]:
    """返回主键列名（无主键返回 None）"""
    for row in gateway.query_rows(sql.table_info_sql(table_name)):
        if row.get('pk'):
            return row['name']
    return None


def count_rows(gateway: ExecutionGateway, table_name: str) -> int:
    """统计行数（表不存在时为 0）"""
    rows = gateway.query_rows(sql.count_rows_sql(table_name))
    if not rows:
        return 0
    return int(next(iter(rows[0].values())) or 0)
