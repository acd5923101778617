"""数据库基础模型导出。

仅提供 Base 定义，导入全部模型以便 `Base.metadata` 包含完整表结构。
生产环境的数据库结构由 SQL / 迁移脚本维护，不在启动时自动建表。
"""

import hazel_api.models  # noqa: F401
from hazel_api.models.base import Base

__all__ = ["Base"]
