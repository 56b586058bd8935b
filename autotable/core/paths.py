"""
autotable 数据库文件位置与缓存清理

数据库文件位于缓存根目录下：
- 指定 user_id：<cache_dir>/<user_id>DB/<db_name>
- 未指定：      <cache_dir>/DB/<db_name>

清理函数均为尽力而为，失败只记录日志。
"""

import logging
import shutil
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

DB_DIR_SUFFIX = 'DB'


def database_directory(cache_dir: Union[str, Path], user_id: Optional[str] = None) -> Path:
    """返回数据库所在目录"""
    name = f"{user_id}{DB_DIR_SUFFIX}" if user_id else DB_DIR_SUFFIX
    return Path(cache_dir) / name


def database_path(
    cache_dir: Union[str, Path],
    db_name: str,
    user_id: Optional[str] = None,
    create: bool = True
) -> Path:
    """
    返回数据库文件路径

    Args:
        cache_dir: 缓存根目录
        db_name: 数据库文件名
        user_id: 用户标识（用于隔离目录）
        create: 是否在目录不存在时创建

    Returns:
        数据库文件路径
    """
    directory = database_directory(cache_dir, user_id)
    path = directory / db_name
    if create and not path.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Creating database directory %s failed: %s", directory, e)
    return path


def _remove(path: Path) -> bool:
    try:
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        logger.error("Error removing %s: %s", path, e)
        return False
    logger.info("Removed %s", path)
    return True


def clean_cache_files(cache_dir: Union[str, Path], db_name: str) -> int:
    """
    删除缓存目录（及其 *DB 子目录）中名称包含数据库文件名的条目

    会一并删除 -wal / -shm / -journal 等附属文件。

    Returns:
        成功删除的条目数
    """
    root = Path(cache_dir)
    if not root.is_dir():
        logger.warning("Cache directory %s does not exist", root)
        return 0

    removed = 0
    try:
        entries = list(root.iterdir())
        for entry in list(entries):
            if entry.is_dir() and DB_DIR_SUFFIX in entry.name:
                entries.extend(entry.iterdir())
    except OSError as e:
        logger.error("Error retrieving contents of %s: %s", root, e)
        return 0

    for entry in entries:
        if db_name in entry.name and entry.exists() and _remove(entry):
            removed += 1
    return removed


def delete_db_folders(cache_dir: Union[str, Path]) -> int:
    """
    删除缓存目录下名称包含 'DB' 的文件夹（所有用户的数据库目录）

    Returns:
        成功删除的文件夹数
    """
    root = Path(cache_dir)
    if not root.is_dir():
        logger.warning("Cache directory %s does not exist", root)
        return 0

    try:
        folders = [
            entry for entry in root.iterdir()
            if entry.is_dir() and not entry.name.startswith('.') and DB_DIR_SUFFIX in entry.name
        ]
    except OSError as e:
        logger.error("Error retrieving contents of %s: %s", root, e)
        return 0
    return sum(1 for folder in folders if _remove(folder))


def run_in_background(fn: Callable[..., Any], *args: Any) -> None:
    """在后台守护线程中执行，立即返回，不提供完成通知"""
    thread = threading.Thread(target=fn, args=args, name=f'autotable-{fn.__name__}', daemon=True)
    thread.start()
