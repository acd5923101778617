"""用户资料接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.dependencies import get_current_user_id, get_password_policy
from hazel_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from hazel_api.schemas.user import UserData, UserUpdateRequest
from hazel_api.services.errors import ForbiddenError
from hazel_api.services.identity import PasswordPolicy, delete_user, get_user, update_profile
from hazel_api.services.patches import UserPatch
from hazel_api.utils.response import success

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    summary="查询当前用户",
    description="返回访问令牌主体对应的用户资料。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_me(
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询当前登录用户资料。"""
    return success(request, UserData.model_validate(get_user(db, user_id=user_id)))


@router.patch(
    "/profile",
    summary="修改个人资料",
    description="只更新请求中携带的字段；新密码与当前密码相同时不会重新哈希。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def patch_profile(
    payload: UserUpdateRequest,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    password_policy: PasswordPolicy = Depends(get_password_policy),
    db: Session = Depends(get_db),
):
    """修改当前用户资料。"""
    patch = UserPatch(**payload.model_dump(exclude_unset=True))
    user = update_profile(db, user_id=user_id, patch=patch, password_policy=password_policy)
    return success(request, UserData.model_validate(user))


@router.get(
    "/{user_id}",
    summary="查询用户",
    description="按 ID 查询用户公开资料。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_user_by_id(
    request: Request,
    user_id: UUID = Path(..., description="目标用户 ID。"),
    _: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询指定用户。"""
    return success(request, UserData.model_validate(get_user(db, user_id=user_id)))


@router.delete(
    "/{user_id}",
    summary="注销账号",
    description="硬删除当前用户，同时删除其凭据、成员关系与其拥有的工作空间。仅允许删除自己。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def remove_user(
    request: Request,
    user_id: UUID = Path(..., description="目标用户 ID。"),
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """注销当前用户账号。"""
    if user_id != current_user_id:
        raise ForbiddenError("users can only delete their own account")
    delete_user(db, user_id=user_id)
    return success(request, {"deleted": True})
