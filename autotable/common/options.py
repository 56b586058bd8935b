"""
autotable 配置选项 dataclass 定义

该模块定义了连接器和数据库管理器的配置选项，替代 **kwargs 参数。
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Literal

from .exceptions import ConfigurationError


DEFAULT_DB_NAME = 'autotable.db'
DEFAULT_VERSION_KEY = 'DBVersion'
PREFERENCES_FILE_NAME = 'preferences.json'

_BEGIN_MODES = ('DEFERRED', 'IMMEDIATE', 'EXCLUSIVE')


@dataclass(slots=True)
class SqliteConnectorOptions:
    """SQLite 连接器配置选项"""
    check_same_thread: bool = False  # 连接由串行锁保护，允许跨线程使用
    timeout: Optional[float] = None  # 连接超时时间（None 使用 sqlite3 默认值）
    isolation_level: Optional[Literal['DEFERRED', 'IMMEDIATE', 'EXCLUSIVE']] = None  # 批量事务的 BEGIN 模式
    cached_statements: int = 128  # 语句缓存数量

    def begin_statement(self) -> str:
        """返回批量事务使用的 BEGIN 语句"""
        if self.isolation_level is None:
            return 'BEGIN'
        mode = self.isolation_level.upper()
        if mode not in _BEGIN_MODES:
            raise ConfigurationError(
                f"Invalid isolation_level '{self.isolation_level}', "
                f"expected one of: {', '.join(_BEGIN_MODES)}"
            )
        return f'BEGIN {mode}'


@dataclass(slots=True)
class DatabaseOptions:
    """DatabaseManager 配置选项"""
    db_name: str = DEFAULT_DB_NAME  # 数据库文件名
    cache_dir: Optional[str] = None  # 缓存根目录（None 时使用系统缓存目录）
    schema_version: str = '1.0'  # 当前 schema 版本，变化时触发迁移
    version_key: str = DEFAULT_VERSION_KEY  # 版本号在偏好存储中的键名
    preferences_path: Optional[str] = None  # 偏好存储文件（None 时位于缓存根目录）
    connector: SqliteConnectorOptions = field(default_factory=SqliteConnectorOptions)

    def resolve_cache_dir(self) -> Path:
        """
        解析缓存根目录

        优先使用 cache_dir，其次 $XDG_CACHE_HOME/autotable，最后 ~/.cache/autotable

        Returns:
            缓存根目录路径
        """
        if self.cache_dir:
            return Path(self.cache_dir)
        base = os.environ.get('XDG_CACHE_HOME')
        if base:
            return Path(base) / 'autotable'
        return Path.home() / '.cache' / 'autotable'

    def resolve_preferences_path(self) -> Path:
        """解析偏好存储文件路径（与用户目录无关，进程内共享）"""
        if self.preferences_path:
            return Path(self.preferences_path)
        return self.resolve_cache_dir() / PREFERENCES_FILE_NAME


def get_default_database_options() -> DatabaseOptions:
    """返回默认的数据库管理器选项"""
    return DatabaseOptions()
