"""
autotable schema 迁移

DatabaseManager 构造时执行一次，根据偏好存储中记录的版本号决定：

- 无版本（UNINITIALIZED）：建表并记录版本
- 版本一致（UP_TO_DATE）：确保表存在（CREATE TABLE IF NOT EXISTS），不移动数据
- 版本不一致（STALE_VERSION）：
    1. 列出现有表
    2. 重命名为 <name>_bak（已存在上次失败遗留的备份时使用 <name>_bak<N>）
    3. 调用建表回调创建当前 schema
    4. 列出新表
    5. 按排序后的公共列把备份数据复制到新表
    6. 在一个事务中删除已恢复的备份表
    7. 全部成功后才记录新版本号；否则保留失败的备份，下次启动重试

迁移是尽力而为的：单表失败只记录日志，不影响其他表，也不会让构造失败。
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..backends.gateway import ExecutionGateway
from ..backends.versions import VersionStore
from ..common.exceptions import AutotableException, MigrationError, SerializationError
from ..common.options import DEFAULT_VERSION_KEY
from . import sql
from .tables import (
    backup_table_name,
    count_rows,
    list_tables,
    split_backup_name,
    table_columns,
    table_primary_key,
)

logger = logging.getLogger(__name__)


class SchemaState(Enum):
    """schema 版本状态"""
    UNINITIALIZED = 'uninitialized'
    UP_TO_DATE = 'up_to_date'
    STALE_VERSION = 'stale_version'


@dataclass
class TableSnapshot:
    """迁移期间的备份表快照"""
    table_name: str
    backup_name: str
    columns: Set[str]


@dataclass
class MigrationResult:
    """一次迁移的结果"""
    state: SchemaState
    old_version: Optional[str]
    new_version: str
    backups: Dict[str, str] = field(default_factory=dict)  # {原表名: 本次创建的备份表名}
    copied: Dict[str, List[str]] = field(default_factory=dict)  # {新表名: 复制的列}
    dropped: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)  # {步骤: 错误信息}
    version_persisted: bool = False

    @property
    def success(self) -> bool:
        return not self.errors

    def raise_on_failure(self) -> None:
        """存在失败步骤时抛出 MigrationError"""
        if self.errors:
            details = '; '.join(f"{step}: {message}" for step, message in self.errors.items())
            raise MigrationError(
                f"Migration {self.old_version or '<none>'} -> {self.new_version} incomplete: {details}"
            )


class MigrationController:
    """schema 版本迁移控制器"""

    def __init__(
        self,
        gateway: ExecutionGateway,
        version_store: VersionStore,
        current_version: str,
        create_tables: Callable[[], bool],
        version_key: str = DEFAULT_VERSION_KEY
    ):
        """
        Args:
            gateway: 执行网关
            version_store: 版本号存储
            current_version: 当前 schema 版本
            create_tables: 建表回调，全部成功返回 True
            version_key: 版本号键名
        """
        self.gateway = gateway
        self.version_store = version_store
        self.current_version = current_version
        self.create_tables = create_tables
        self.version_key = version_key

    def recorded_version(self) -> Optional[str]:
        """读取已记录的版本号（读取失败视为未初始化）"""
        try:
            version = self.version_store.get(self.version_key)
        except SerializationError as e:
            logger.error("Cannot read schema version: %s", e)
            return None
        return version or None

    def state(self) -> SchemaState:
        return self._state_of(self.recorded_version())

    def _state_of(self, old_version: Optional[str]) -> SchemaState:
        if old_version is None:
            return SchemaState.UNINITIALIZED
        if old_version == self.current_version:
            return SchemaState.UP_TO_DATE
        return SchemaState.STALE_VERSION

    def run(self) -> MigrationResult:
        """执行迁移（持有串行队列直到完成）"""
        with self.gateway.serial():
            old_version = self.recorded_version()
            state = self._state_of(old_version)
            logger.info("Database version: old %s -> new %s", old_version, self.current_version)
            if state is SchemaState.STALE_VERSION:
                return self._upgrade(old_version)
            return self._initialize(state, old_version)

    def _initialize(self, state: SchemaState, old_version: Optional[str]) -> MigrationResult:
        result = MigrationResult(state, old_version, self.current_version)
        if not self._create_tables():
            result.errors['create_tables'] = 'one or more tables could not be created'
        if state is SchemaState.UNINITIALIZED and result.success:
            self._persist_version(result)
        return result

    def _create_tables(self) -> bool:
        try:
            return bool(self.create_tables())
        except AutotableException as e:
            logger.error("Creating tables failed: %s", e)
            return False

    def _persist_version(self, result: MigrationResult) -> None:
        try:
            self.version_store.set(self.version_key, self.current_version)
        except SerializationError as e:
            result.errors['persist_version'] = str(e)
            logger.error("Cannot persist schema version: %s", e)
            return
        result.version_persisted = True

    def _upgrade(self, old_version: Optional[str]) -> MigrationResult:
        result = MigrationResult(SchemaState.STALE_VERSION, old_version, self.current_version)
        logger.info("Upgrading database")

        # 1. 现有表与遗留备份
        existing = list_tables(self.gateway)
        taken = set(existing)
        backups: Dict[str, List[Tuple[int, str]]] = {}
        originals: List[str] = []
        for name in existing:
            parsed = split_backup_name(name)
            if parsed is None:
                originals.append(name)
            else:
                backups.setdefault(parsed[0], []).append((parsed[1], name))
        logger.info("Found %d tables: %s", len(originals), originals)

        # 2. 重命名为备份表
        rename_failed: Set[str] = set()
        for name in originals:
            attempt = 0
            while backup_table_name(name, attempt) in taken:
                attempt += 1
            backup = backup_table_name(name, attempt)
            if self.gateway.run(sql.rename_table_sql(name, backup)):
                taken.add(backup)
                backups.setdefault(name, []).append((attempt, backup))
                result.backups[name] = backup
                logger.info("Table %s backed up as %s", name, backup)
            else:
                rename_failed.add(name)
                result.errors[f'rename:{name}'] = str(self.gateway.last_error)
                logger.error("Backup of %s failed: %s", name, self.gateway.last_error)

        # 3. 创建当前 schema
        created = self._create_tables()
        if not created:
            result.errors['create_tables'] = 'one or more tables could not be created'

        # 4-5. 恢复数据
        new_tables = list_tables(self.gateway, include_backups=False)
        recovered: Set[str] = set()
        for table in new_tables:
            chain = sorted(backups.get(table, []))
            if not chain or table in rename_failed:
                continue
            if self._restore_table(table, [name for _, name in chain], result):
                recovered.add(table)

        # 6. 删除已恢复的备份（建表全部成功时，也删除已不在 schema 中的表的备份）
        droppable = [
            name
            for base, chain in sorted(backups.items())
            if base in recovered or (created and base not in new_tables)
            for _, name in sorted(chain)
        ]
        if droppable:
            statements = [(sql.drop_table_sql(name), ()) for name in droppable]
            if self.gateway.run_batch(statements):
                result.dropped = droppable
            else:
                result.errors['drop_backups'] = str(self.gateway.last_error)
                logger.error("Dropping backup tables failed: %s", self.gateway.last_error)

        # 7. 记录版本
        if result.success:
            self._persist_version(result)
            logger.info("Database upgrade finished")
        else:
            logger.warning(
                "Database upgrade incomplete, will retry on next start: %s",
                list(result.errors)
            )
        return result

    def _restore_table(self, table: str, sources: List[str], result: MigrationResult) -> bool:
        """
        从备份表复制公共列到新表

        sources 按尝试序号从旧到新排列。有主键时依次复制，后面的备份以
        INSERT OR REPLACE 覆盖同主键行；无主键时只复制最新的非空备份。
        """
        new_columns = set(table_columns(self.gateway, table))
        if len(sources) == 1 or table_primary_key(self.gateway, table) is not None:
            plan = [(source, index > 0) for index, source in enumerate(sources)]
        else:
            non_empty = [source for source in sources if count_rows(self.gateway, source) > 0]
            plan = [(non_empty[-1], False)] if non_empty else []

        for source, replace in plan:
            snapshot = TableSnapshot(table, source, set(table_columns(self.gateway, source)))
            common = sorted(snapshot.columns & new_columns)
            if not common:
                logger.info("No common columns between %s and %s", source, table)
                continue
            if not self.gateway.run(sql.copy_rows_sql(table, source, common, replace=replace)):
                result.errors[f'copy:{table}'] = str(self.gateway.last_error)
                logger.error("Migrating %s into %s failed: %s", source, table, self.gateway.last_error)
                return False
            result.copied[table] = common
            logger.info("Migrated %s into %s, columns: %s", source, table, ', '.join(common))
        return True
