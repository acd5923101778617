"""FastAPI 应用入口点。"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from hazel_api.api.router import api_router
from hazel_api.core.config import get_settings
from hazel_api.exceptions import register_exception_handlers
from hazel_api.logging_setup import setup_logging
from hazel_api.middlewares import register_middlewares
from hazel_api.services.mailer import MailDispatcher, SmtpTransport

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动邮件后台线程，关闭时投递完剩余任务。"""
    settings = get_settings()
    if not settings.auth_jwt_secret:
        logger.warning("HAZEL_AUTH_JWT_SECRET is not set; login and token refresh will fail")

    dispatcher = MailDispatcher(
        SmtpTransport.from_settings(settings),
        max_queue_size=settings.mail_queue_max_size,
    )
    dispatcher.start()
    app.state.mailer = dispatcher
    logger.info("%s started (env=%s)", settings.app_name, settings.app_env)
    try:
        yield
    finally:
        dispatcher.stop()
        stats = dispatcher.stats()
        logger.info(
            "mail dispatcher stopped: sent=%d failed=%d dropped=%d",
            stats["sent"],
            stats["failed"],
            stats["dropped"],
        )


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "项目管理后端接口。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`。\n"
            "除注册、验证、登录与刷新外，均需携带 `Authorization: Bearer <访问令牌>`。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、邮箱验证、登录与令牌刷新。"},
            {"name": "users", "description": "用户资料查询、修改与注销。"},
            {"name": "workspaces", "description": "工作空间生命周期与成员管理。"},
            {"name": "projects", "description": "工作空间下的项目管理。"},
            {"name": "tasks", "description": "项目下的任务与指派管理。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
