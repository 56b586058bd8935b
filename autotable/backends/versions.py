"""
schema 版本号存储

版本号保存在进程级偏好文件（JSON 键值对）中，独立于数据库文件，
也独立于按用户划分的数据库目录。
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..common.exceptions import SerializationError

logger = logging.getLogger(__name__)


class VersionStore:
    """
    偏好键值存储

    file_path 为 None 时仅保存在内存中（适合测试）。
    写入使用临时文件 + 重命名保证原子性。
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None):
        self.file_path: Optional[Path] = Path(file_path) if file_path is not None else None
        self._lock = threading.Lock()
        self._memory: Dict[str, str] = {}

    def _load(self) -> Dict[str, str]:
        if self.file_path is None:
            return dict(self._memory)
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SerializationError(f"Failed to read preferences '{self.file_path}': {e}") from e
        if not isinstance(data, dict):
            raise SerializationError(f"Preferences file '{self.file_path}' is not a JSON object")
        return data

    def _save(self, data: Dict[str, str]) -> None:
        if self.file_path is None:
            self._memory = dict(data)
            return
        temp_path = self.file_path.parent / (self.file_path.name + '.tmp')
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            temp_path.replace(self.file_path)
        except OSError as e:
            # 清理临时文件
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except FileNotFoundError:
                    pass
            raise SerializationError(f"Failed to write preferences '{self.file_path}': {e}") from e

    def get(self, key: str) -> Optional[str]:
        """读取键值，不存在返回 None"""
        with self._lock:
            value = self._load().get(key)
        return str(value) if value is not None else None

    def set(self, key: str, value: str) -> None:
        """写入键值"""
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)
        logger.debug("Preference %s set to %s", key, value)

    def remove(self, key: str) -> None:
        """删除键"""
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def __repr__(self) -> str:
        return f"VersionStore(file_path={str(self.file_path)!r})"
