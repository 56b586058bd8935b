"""
autotable 后端模块

提供 SQLite 执行网关和版本号存储
"""

from .gateway import ExecutionGateway
from .versions import VersionStore

__all__ = [
    'ExecutionGateway',
    'VersionStore',
]
