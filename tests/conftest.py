"""
Pytest 配置和共享 fixtures

此文件提供 pytest 测试所需的共享配置和 fixtures。
"""
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# 确保可以导入 autotable
sys.path.insert(0, str(Path(__file__).parent.parent))

from autotable.common.options import DatabaseOptions
from autotable.backends.gateway import ExecutionGateway


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    提供临时目录 fixture

    使用 TemporaryDirectory 确保测试隔离，
    测试结束后自动清理。

    Yields:
        临时目录的 Path 对象
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_file(temp_dir: Path) -> Generator[Path, None, None]:
    """
    提供临时文件路径 fixture

    Args:
        temp_dir: 临时目录 fixture

    Yields:
        临时文件的 Path 对象（文件本身不会被创建）
    """
    yield temp_dir / "test_db.db"


@pytest.fixture
def options(temp_dir: Path) -> DatabaseOptions:
    """
    指向临时缓存目录的数据库选项

    数据库文件和偏好文件都位于 temp_dir 下，测试之间互不影响。
    """
    return DatabaseOptions(cache_dir=str(temp_dir))


@pytest.fixture
def gateway(temp_file: Path) -> Generator[ExecutionGateway, None, None]:
    """打开临时数据库文件的执行网关"""
    gw = ExecutionGateway(temp_file)
    yield gw
    gw.close()
