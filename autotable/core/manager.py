"""
autotable 数据库管理器

对外提供建表、插入或更新、查询、删除、表存在性判断等操作。
构造时完成 schema 版本检查与迁移，之后才接受业务操作。
"""

import logging
from typing import Any, ClassVar, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from ..backends.gateway import ExecutionGateway, Statement
from ..backends.versions import VersionStore
from ..common.exceptions import AutotableException, InsertionError, TableCreationError
from ..common.options import DatabaseOptions, get_default_database_options
from . import sql
from .marshal import from_stored_rows, to_bind_values
from .migration import MigrationController, MigrationResult
from .paths import clean_cache_files, database_path, delete_db_folders, run_in_background
from .record import DatabaseTable
from .schema import describe
from .tables import exists_table, list_tables

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=DatabaseTable)


class DatabaseManager:
    """
    数据库管理器

    子类可以通过 record_types 声明需要建表的记录类型，或重写 create_tables()。

    Example:
        class AppDatabase(DatabaseManager):
            record_types = (User, Order)

        with AppDatabase(user_id='42', options=DatabaseOptions(schema_version='2.0')) as db:
            db.insert_or_update(User(id=1, name='Alice'))
            users = db.query(User, where="id = 1")
    """

    record_types: ClassVar[Sequence[Type[DatabaseTable]]] = ()

    def __init__(
        self,
        user_id: Optional[str] = None,
        options: Optional[DatabaseOptions] = None,
        record_types: Optional[Iterable[Type[DatabaseTable]]] = None,
        version_store: Optional[VersionStore] = None,
    ):
        """
        打开数据库并执行版本迁移

        Args:
            user_id: 用户标识，用于隔离数据库目录
            options: 数据库配置选项
            record_types: 需要建表的记录类型（默认使用类属性 record_types）
            version_store: 版本号存储（默认使用 options 指定的偏好文件）

        Raises:
            DatabaseConnectionError: 数据库文件无法打开
        """
        self.options = options or get_default_database_options()
        self.user_id = user_id
        self.registered_types: Tuple[Type[DatabaseTable], ...] = tuple(
            record_types if record_types is not None else type(self).record_types
        )

        self.db_path = database_path(self.options.resolve_cache_dir(), self.options.db_name, user_id)
        logger.info("Database path: %s", self.db_path)

        self.gateway = ExecutionGateway(self.db_path, self.options.connector)
        self.version_store = version_store or VersionStore(self.options.resolve_preferences_path())

        controller = MigrationController(
            self.gateway,
            self.version_store,
            self.options.schema_version,
            self.create_tables,
            self.options.version_key,
        )
        self.migration_result: MigrationResult = controller.run()

    # ========== 建表 ==========

    def create_tables(self) -> bool:
        """
        创建所有已注册记录类型的表（迁移时调用，子类可重写）

        Returns:
            是否全部创建成功
        """
        ok = True
        for record_type in self.registered_types:
            try:
                self.create_table(record_type)
            except AutotableException as e:
                logger.error("Create table for %s failed: %s", record_type.__name__, e)
                ok = False
        return ok

    def create_table_sql(self, record_type: Type[DatabaseTable]) -> str:
        """生成记录类型的建表语句"""
        schema = describe(record_type)
        return sql.create_table_sql(schema.table_name, schema.columns)

    def create_table(self, record_type: Type[DatabaseTable]) -> None:
        """
        建表（已存在时不做任何事）

        Raises:
            InvalidTypeError: 存在无法映射的字段
            SchemaError: 记录类型声明错误
            TableCreationError: 引擎执行失败
        """
        statement = self.create_table_sql(record_type)
        # 持有串行队列直到读取 last_error，避免被其他线程的语句覆盖
        with self.gateway.serial():
            if self.gateway.run(statement):
                return
            engine_error = self.gateway.last_error
        table_name = record_type.__tablename__
        logger.error("Create %s failed", table_name)
        raise TableCreationError(table_name, engine_error)

    # ========== 写入 ==========

    def insert_or_update(self, record: DatabaseTable, clear: bool = False) -> None:
        """
        插入或整行替换单条记录

        Args:
            record: 记录实例
            clear: 是否先清空表
        """
        self.insert_or_update_all([record], clear=clear)

    def insert_or_update_all(
        self,
        records: Iterable[T],
        clear: bool = False,
        record_type: Optional[Type[T]] = None
    ) -> None:
        """
        在一个事务中批量插入或整行替换

        同主键的旧行被整行替换（不是合并），未给出的列回到默认值。
        任一记录编码失败时不执行任何 SQL；引擎报错时整批回滚。

        Args:
            records: 同一类型的记录
            clear: 是否先清空表（与插入在同一事务中）
            record_type: 记录类型（records 为空且 clear=True 时必须提供）

        Raises:
            InvalidTypeError: 记录类型不一致或字段无法映射
            EncodingError: 字段编码失败
            InsertionError: 事务执行失败（已回滚）
        """
        records = list(records)
        if record_type is None:
            if not records:
                if clear:
                    raise ValueError("record_type is required to clear a table without records")
                return
            record_type = type(records[0])

        schema = describe(record_type)
        statements: List[Statement] = []
        if clear:
            statements.append((sql.delete_all_sql(schema.table_name), ()))

        insert_sql = sql.insert_or_replace_sql(schema.table_name, schema.column_names)
        for record in records:
            statements.append((insert_sql, to_bind_values(record, schema)))

        if not statements:
            return
        with self.gateway.serial():
            if self.gateway.run_batch(statements):
                return
            engine_error = self.gateway.last_error
        logger.error("Insert into %s failed", schema.table_name)
        raise InsertionError(schema.table_name, engine_error)

    # ========== 查询 ==========

    def query(self, record_type: Type[T], where: Optional[str] = None) -> List[T]:
        """
        查询记录

        Args:
            record_type: 记录类型
            where: 原样拼接到 WHERE 之后的条件文本（不做转义，调用方负责安全性）

        Returns:
            记录列表（无结果为空列表）

        Raises:
            DecodingError: 结果行无法还原为记录
        """
        schema = describe(record_type)
        rows = self.gateway.query_rows(sql.select_sql(schema.table_name, where))
        return from_stored_rows(rows, record_type)

    # ========== 删除 ==========

    def delete_table(self, table_name: str, conditions: Optional[Mapping[str, Any]] = None) -> bool:
        """
        删除表中数据（保留表结构）

        Args:
            table_name: 表名
            conditions: {列名: 值} 等值条件，AND 连接；值以字面量拼接，不得传入不可信数据

        Returns:
            是否执行成功
        """
        statement = sql.delete_where_sql(table_name, conditions)
        logger.info("Delete data SQL: %s", statement)
        return self.gateway.run(statement)

    # ========== 表信息 ==========

    def exists_table(self, table_name: str) -> bool:
        """判断表是否存在"""
        return exists_table(self.gateway, table_name)

    def table_names(self) -> List[str]:
        """列出所有用户表"""
        return list_tables(self.gateway)

    # ========== 缓存清理 ==========

    @staticmethod
    def update_version_clean_cache(options: Optional[DatabaseOptions] = None) -> None:
        """后台删除缓存目录中的数据库文件，立即返回"""
        opts = options or get_default_database_options()
        run_in_background(clean_cache_files, opts.resolve_cache_dir(), opts.db_name)

    @staticmethod
    def delete_folders_containing_db(options: Optional[DatabaseOptions] = None) -> None:
        """后台删除缓存目录中所有数据库文件夹，立即返回"""
        opts = options or get_default_database_options()
        run_in_background(delete_db_folders, opts.resolve_cache_dir())

    # ========== 生命周期 ==========

    def close(self) -> None:
        """关闭数据库"""
        self.gateway.close()

    def __enter__(self) -> 'DatabaseManager':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DatabaseManager(db_path='{self.db_path}', version='{self.options.schema_version}')"
