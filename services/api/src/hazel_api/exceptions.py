"""应用异常处理注册。"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from hazel_api.services.errors import FailedOperationError, ServiceError
from hazel_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "VALIDATION_ERROR",
}


def _http_error_code(status_code: int) -> str:
    return _HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR")


def _suggestion(status_code: int) -> str | None:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "请重新登录并携带有效访问令牌。"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "请确认当前账号是否为该工作空间成员及其角色。"
    if status_code == status.HTTP_404_NOT_FOUND:
        return "请确认资源 ID 是否正确，或资源是否已被删除。"
    if status_code == status.HTTP_422_UNPROCESSABLE_ENTITY:
        return "请根据错误字段提示修正请求参数后重试。"
    if status_code >= 500:
        return "请稍后重试，若持续失败请联系管理员并提供 request_id。"
    return None


def _base_details(status_code: int, reason: str) -> dict[str, object]:
    details: dict[str, object] = {"status_code": status_code, "reason": reason}
    suggestion = _suggestion(status_code)
    if suggestion:
        details["suggestion"] = suggestion
    return details


async def service_exception_handler(request: Request, exc: ServiceError):
    """将服务层异常映射为标准错误结构。"""
    if isinstance(exc, FailedOperationError):
        # 基础设施失败的原因已在服务层记录，这里只补充请求上下文。
        logger.error(
            "request %s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc.__cause__,
        )
    details = _base_details(exc.status_code, exc.error_code.lower())
    details.update(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=exc.error_code, message=exc.message, details=details),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常统一包装为标准错误结构。"""
    code = _http_error_code(exc.status_code)
    message = exc.detail if isinstance(exc.detail, str) else "请求处理失败。"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details=_base_details(exc.status_code, code.lower())),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    details = _base_details(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error")
    details["errors"] = normalized_errors
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_payload(request, code="VALIDATION_ERROR", message="请求参数校验失败。", details=details),
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """数据库异常只记录日志，对外返回不透明的失败信息。"""
    logger.exception("database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code=FailedOperationError.error_code,
            message="failed to complete operation",
            details=_base_details(status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error"),
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details=_base_details(status.HTTP_500_INTERNAL_SERVER_ERROR, "unexpected_exception"),
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(ServiceError)(service_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(SQLAlchemyError)(database_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
