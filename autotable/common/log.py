"""
autotable 日志工具

库内部每个模块使用 logging.getLogger(__name__)，包级 logger 默认挂 NullHandler；
应用程序可调用 configure_logging() 输出到控制台或 JSON。

Usage:
    from autotable.common.log import configure_logging

    configure_logging(level='DEBUG')
"""

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# LogRecord 自带属性，其余属性视为 extra 字段
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None)).keys()) | {'message', 'asctime'}


def _json_formatter(record: logging.LogRecord) -> str:
    """将日志记录渲染为 JSON 字符串"""
    payload: Dict[str, Any] = {
        'level': record.levelname,
        'logger': record.name,
        'message': record.getMessage(),
    }
    if record.exc_info:
        payload['exc_info'] = logging.Formatter().formatException(record.exc_info)
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS and not key.startswith('_'):
            payload[key] = value
    return json.dumps(payload, ensure_ascii=False, default=str)


class JsonFormatter(logging.Formatter):
    """最小 JSON 格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        return _json_formatter(record)


def configure_logging(level: str = 'INFO', json_logs: bool = False) -> None:
    """
    配置根 logger

    Args:
        level: 日志级别名称（如 'DEBUG', 'INFO'）
        json_logs: 是否输出 JSON 格式
    """
    formatter_name = 'json' if json_logs else 'console'

    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'console': {
                    'format': '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S',
                },
                'json': {
                    '()': JsonFormatter,
                },
            },
            'handlers': {
                'default': {
                    'class': 'logging.StreamHandler',
                    'formatter': formatter_name,
                    'level': level,
                }
            },
            'root': {
                'handlers': ['default'],
                'level': level,
            },
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """获取指定名称的 logger（None 返回包级 logger）"""
    return logging.getLogger(name or 'autotable')


__all__ = ['configure_logging', 'get_logger', 'JsonFormatter']
