"""
autotable SQL 执行网关

所有语句经由同一个 sqlite3 连接串行执行（可重入锁充当串行队列）。
执行失败不抛异常，而是记录日志、保存 last_error 并返回 False，
由上层决定是否转换为带类型的异常。
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple, Union

from ..common.exceptions import DatabaseConnectionError, EngineErrorInfo
from ..common.options import SqliteConnectorOptions

logger = logging.getLogger(__name__)

# (sql, 绑定参数)
Statement = Tuple[str, Sequence[Any]]
StoredRow = Dict[str, Any]

# 绑定阶段 sqlite3 会抛出非 sqlite3.Error 的异常（整数溢出、无法编码的字符串）
ExecutionErrors = (sqlite3.Error, OverflowError, ValueError)


def engine_error_from(exc: Exception) -> EngineErrorInfo:
    """从执行异常提取错误码和消息（非 sqlite3 异常没有错误码）"""
    return EngineErrorInfo(
        code=getattr(exc, 'sqlite_errorcode', None),
        name=getattr(exc, 'sqlite_errorname', None) or type(exc).__name__,
        message=str(exc),
    )


class ExecutionGateway:
    """串行 SQL 执行网关"""

    def __init__(
        self,
        db_path: Union[str, Path],
        options: Optional[SqliteConnectorOptions] = None
    ):
        """
        打开数据库连接

        Args:
            db_path: 数据库文件路径（':memory:' 表示内存数据库）
            options: 连接器配置选项

        Raises:
            DatabaseConnectionError: 数据库无法打开
        """
        self.db_path = str(db_path)
        self.options = options or SqliteConnectorOptions()
        self._begin_sql = self.options.begin_statement()
        self._lock = threading.RLock()
        self.last_error: Optional[EngineErrorInfo] = None

        connect_kwargs: Dict[str, Any] = {
            'check_same_thread': self.options.check_same_thread,
            'cached_statements': self.options.cached_statements,
            # 自动提交模式，事务由 run_batch 显式控制
            'isolation_level': None,
        }
        if self.options.timeout is not None:
            connect_kwargs['timeout'] = self.options.timeout

        try:
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(self.db_path, **connect_kwargs)
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Failed to open database '{self.db_path}': {e}") from e
        self._conn.row_factory = sqlite3.Row

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseConnectionError(f"Database '{self.db_path}' is closed")
        return self._conn

    @property
    def is_closed(self) -> bool:
        return self._conn is None

    def _record_error(self, exc: Exception, sql: str) -> None:
        self.last_error = engine_error_from(exc)
        logger.error(
            "SQL error %s: %s | %s",
            self.last_error.code, self.last_error.message, sql
        )

    @contextmanager
    def serial(self) -> Generator['ExecutionGateway', None, None]:
        """在一段多步操作期间独占串行队列"""
        with self._lock:
            yield self

    def run(self, sql: str, args: Sequence[Any] = ()) -> bool:
        """
        执行单条语句

        Returns:
            是否成功（引擎错误返回 False，不抛异常）
        """
        with self._lock:
            try:
                self.connection.execute(sql, tuple(args)).close()
            except ExecutionErrors as e:
                self._record_error(e, sql)
                return False
            return True

    def run_batch(self, statements: Sequence[Statement]) -> bool:
        """
        在一个事务中执行多条语句

        任一语句失败则整体回滚。

        Returns:
            是否全部成功提交
        """
        with self._lock:
            conn = self.connection
            try:
                conn.execute(self._begin_sql)
            except ExecutionErrors as e:
                self._record_error(e, self._begin_sql)
                return False

            for sql, args in statements:
                try:
                    conn.execute(sql, tuple(args)).close()
                except ExecutionErrors as e:
                    self._record_error(e, sql)
                    self._rollback()
                    return False

            try:
                conn.execute('COMMIT')
            except ExecutionErrors as e:
                self._record_error(e, 'COMMIT')
                self._rollback()
                return False
            return True

    def query_rows(self, sql: str, args: Sequence[Any] = ()) -> List[StoredRow]:
        """
        执行查询并一次性读取全部结果

        Returns:
            [{列名: 值}]，无结果或出错时为空列表
        """
        with self._lock:
            try:
                cursor = self.connection.execute(sql, tuple(args))
                try:
                    rows = cursor.fetchall()
                finally:
                    cursor.close()
            except ExecutionErrors as e:
                self._record_error(e, sql)
                return []
            return [dict(row) for row in rows]

    def _rollback(self) -> None:
        conn = self.connection
        if not conn.in_transaction:
            return
        try:
            conn.execute('ROLLBACK')
        except sqlite3.Error as e:
            logger.error("Rollback failed: %s", e)

    def close(self) -> None:
        """关闭连接"""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __repr__(self) -> str:
        return f"ExecutionGateway(db_path='{self.db_path}', closed={self.is_closed})"
