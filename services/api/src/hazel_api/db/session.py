"""数据库会话管理。"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hazel_api.core.config import Settings, get_settings


def build_engine(settings: Settings) -> Engine:
    """按配置创建数据库引擎。"""
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql"):
        options["pool_size"] = settings.database_pool_size
        options["pool_timeout"] = settings.database_pool_timeout_seconds
        if settings.database_statement_timeout_ms > 0:
            # 语句级超时，客户端断开或慢查询时及时释放工作线程。
            options["connect_args"] = {"options": f"-c statement_timeout={settings.database_statement_timeout_ms}"}
    return create_engine(settings.database_url, **options)


# 全局数据库引擎与会话工厂，路由层通过依赖注入获取短生命周期会话。
engine = build_engine(get_settings())
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
