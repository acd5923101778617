"""健康检查接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.schemas.common import ErrorResponse, SuccessResponse
from hazel_api.schemas.responses import HealthStatusData
from hazel_api.utils.response import success

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def live(request: Request):
    """仅表示进程存活，不校验数据库与邮件通道。"""
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可连通且邮件分发线程在运行时视为就绪。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    """执行最小查询确认数据库可用，并回报邮件分发器状态。"""
    db.execute(text("select 1"))
    mailer = getattr(request.app.state, "mailer", None)
    return success(request, {"status": "ready"}, meta={"mailer_running": bool(getattr(mailer, "running", False))})
