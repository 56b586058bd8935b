"""
autotable 记录类型协议

记录类型是继承 DatabaseTable 的 dataclass：

    @dataclass
    class User(DatabaseTable):
        __tablename__ = 'user'
        __primary_key__ = 'id'
        __enum_mapper__ = {'role': EnumKind.INT}

        id: int = 0
        name: str = ''
        role: Role = Role.GUEST
        profiles: List[Profile] = field(default_factory=list)

所有字段必须带默认值，使 User() 可以构造出零值实例。
"""

import dataclasses
from typing import Any, ClassVar, Dict

from .types import EnumKind

# dataclass field metadata 中使用的命名空间
METADATA_KEY = 'autotable'


class DatabaseTable:
    """数据库表记录基类"""

    # 表名（必填）
    __tablename__: ClassVar[str] = ''
    # 主键字段名，空字符串表示无主键
    __primary_key__: ClassVar[str] = ''
    # 枚举字段映射 {字段名: 原始值类型}
    __enum_mapper__: ClassVar[Dict[str, EnumKind]] = {}

    @classmethod
    def init_dummy_instance(cls) -> Any:
        """构造零值实例"""
        return cls()


def column(
    *,
    primary_key: bool = False,
    transient: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    **kwargs: Any
) -> Any:
    """
    声明带列选项的 dataclass 字段

    Args:
        primary_key: 是否为主键
        transient: 是否不持久化（不生成列）
        default: 默认值
        default_factory: 默认值工厂

    Example:
        id: int = column(primary_key=True, default=0)
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[METADATA_KEY] = {
        'primary_key': primary_key,
        'transient': transient,
    }
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata=metadata,
        **kwargs
    )


def column_options(f: dataclasses.Field) -> Dict[str, Any]:
    """读取字段的列选项"""
    return dict(f.metadata.get(METADATA_KEY, {}))
