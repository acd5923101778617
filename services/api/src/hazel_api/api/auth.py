"""注册、邮箱验证、登录与令牌刷新接口。"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.dependencies import get_mailer, get_password_policy
from hazel_api.schemas.auth import (
    AuthAccessData,
    AuthLoginData,
    AuthLoginRequest,
    AuthLogoutData,
    AuthRefreshRequest,
    AuthRegisterRequest,
    AuthResendRequest,
    AuthVerifyRequest,
)
from hazel_api.schemas.common import AcceptedData, ErrorResponse, SuccessResponse
from hazel_api.schemas.user import UserData
from hazel_api.services.identity import (
    PasswordPolicy,
    create_session,
    refresh_session,
    register_user,
    resend_verification,
    revoke_session,
    verify_user,
)
from hazel_api.services.mailer import Mailer
from hazel_api.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    summary="注册账号",
    description="创建未验证账号，并向注册邮箱发送 6 位验证码。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[UserData],
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def register(
    payload: AuthRegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    password_policy: PasswordPolicy = Depends(get_password_policy),
):
    """注册账号并投递验证邮件。"""
    user = register_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        mailer=mailer,
        password_policy=password_policy,
    )
    return success(request, UserData.model_validate(user), message="注册成功，请查收验证邮件。")


@router.post(
    "/verify",
    summary="验证邮箱",
    description="提交邮件中的验证码完成邮箱验证，验证码仅能使用一次。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def verify(
    payload: AuthVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """消费验证码并将账号置为已验证。"""
    user = verify_user(db, email=payload.email, code=payload.code, mailer=mailer)
    return success(request, UserData.model_validate(user), message="邮箱验证成功。")


@router.post(
    "/verify/request",
    summary="重新发送验证码",
    description="为未验证账号重新签发验证码，邮件异步投递。",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SuccessResponse[AcceptedData],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def request_verification(
    payload: AuthResendRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """重新发送邮箱验证码。"""
    resend_verification(db, email=payload.email, mailer=mailer)
    return success(request, {"accepted": True}, message="验证码已重新发送。")


@router.post(
    "/login",
    summary="登录",
    description="使用邮箱密码登录，返回刷新令牌；刷新令牌用于换取访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """校验邮箱密码并签发刷新令牌。"""
    session = create_session(db, email=payload.email, password=payload.password)
    return success(
        request,
        {
            "user": UserData.model_validate(session.user),
            "refresh_token": session.refresh_token,
            "expires_at": session.expires_at,
        },
    )


@router.post(
    "/access",
    summary="换取访问令牌",
    description="使用刷新令牌换取短期访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthAccessData],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def access(
    payload: AuthRefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """刷新令牌换取访问令牌。"""
    grant = refresh_session(db, refresh_token=payload.refresh_token)
    now_ts = int(datetime.now(timezone.utc).timestamp())
    return success(
        request,
        {
            "access_token": grant.access_token,
            "token_type": "bearer",
            "expires_at": grant.expires_at,
            "expires_in": max(0, int(grant.expires_at.timestamp()) - now_ts),
            "refresh_token": grant.refresh_token,
            "refresh_expires_at": grant.refresh_expires_at,
        },
    )


@router.post(
    "/logout",
    summary="登出",
    description="撤销刷新令牌，之后该刷新令牌无法再换取访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutData],
    responses={401: {"model": ErrorResponse}},
)
def logout(
    payload: AuthRefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """撤销刷新令牌记录。"""
    revoked = revoke_session(db, refresh_token=payload.refresh_token)
    return success(request, {"logged_out": True, "revoked": revoked})
