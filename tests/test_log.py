"""
日志配置测试
"""

import json
import logging
from typing import Generator

import pytest

from autotable import configure_logging
from autotable.common.log import JsonFormatter, get_logger


@pytest.fixture
def restore_root_logger() -> Generator[None, None, None]:
    """测试结束后恢复根 logger 的 handler 和级别"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """JSON 格式化器测试"""

    def test_format_with_extra(self) -> None:
        record = logging.LogRecord('autotable.test', logging.INFO, __file__, 1, 'copied %s rows', (3,), None)
        record.table = 'user'
        payload = json.loads(JsonFormatter().format(record))
        assert payload['level'] == 'INFO'
        assert payload['logger'] == 'autotable.test'
        assert payload['message'] == 'copied 3 rows'
        assert payload['table'] == 'user'
        assert 'args' not in payload


class TestConfigureLogging:
    """configure_logging 测试"""

    def test_console(self, restore_root_logger: None) -> None:
        configure_logging(level='DEBUG')
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[-1].formatter, JsonFormatter)

    def test_json(self, restore_root_logger: None) -> None:
        configure_logging(level='WARNING', json_logs=True)
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[-1].formatter, JsonFormatter)

    def test_package_logger(self) -> None:
        assert get_logger().name == 'autotable'
        assert get_logger('autotable.core').name == 'autotable.core'
