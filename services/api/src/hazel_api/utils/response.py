"""统一响应结构工具。"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "internal server error"

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "查询成功。",
    "POST": "操作成功。",
    "PATCH": "更新成功。",
    "DELETE": "删除成功。",
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "request_started_at", None)
    if not isinstance(started_at, float):
        return None
    return int((perf_counter() - started_at) * 1000)


def success(
    request: Request,
    data: Any,
    meta: dict[str, Any] | None = None,
    *,
    message: str | None = None,
) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    method = request.method.upper()
    final_meta: dict[str, Any] = {
        "message": message or _SUCCESS_MESSAGE_BY_METHOD.get(method, "操作成功。"),
        "method": method,
        "path": request.url.path,
        "timestamp": _utc_now_iso(),
        "process_ms": _elapsed_ms(request),
    }
    if meta:
        final_meta.update(meta)
    return {"request_id": _request_id(request), "data": data, "meta": final_meta}


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构。"""
    final_details: dict[str, Any] = {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": _utc_now_iso(),
    }
    if details:
        final_details.update(details)
    return {
        "request_id": _request_id(request),
        "error": {"code": code, "message": message, "details": final_details},
    }
