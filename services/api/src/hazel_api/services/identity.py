"""身份服务：注册、邮箱验证、登录会话与资料维护。

账号状态仅有 未验证 -> 已验证 一条迁移路径，通过消费邮箱验证码完成。
本模块是唯一同时调用口令编码与令牌签发的地方。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hazel_api.core.config import get_settings
from hazel_api.core.security import TokenKind, issue_access_token, issue_refresh_token, validate_token
from hazel_api.logging_setup import redact_email
from hazel_api.models.enums import TokenScope, WorkspaceRole
from hazel_api.models.project import TaskAssignment
from hazel_api.models.user import User
from hazel_api.models.workspace import WorkspaceMembership
from hazel_api.services.credential_store import (
    delete_token,
    delete_tokens_for_user,
    find_token_owner,
    put_token,
)
from hazel_api.services.errors import (
    AlreadyVerifiedError,
    DuplicateUserError,
    FailedOperationError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UnverifiedUserError,
    WeakPasswordError,
)
from hazel_api.services.local_auth import generate_otp, hash_password, hash_token, verify_password
from hazel_api.services.mailer import VERIFY_EMAIL_TEMPLATE, WELCOME_EMAIL_TEMPLATE, MailAddress, Mailer
from hazel_api.services.patches import UserPatch, apply_patch, is_set
from hazel_api.services.workspaces import purge_workspaces

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "invalid credentials"
_INVALID_TOKEN = "token is invalid or expired"


@dataclass(frozen=True)
class PasswordPolicy:
    """口令长度策略，由配置构造后注入，不使用全局校验器。"""

    min_length: int = 8
    max_length: int = 20

    def check(self, password: str) -> None:
        if not self.min_length <= len(password) <= self.max_length:
            raise WeakPasswordError(
                f"password must be between {self.min_length} and {self.max_length} characters"
            )


@dataclass(frozen=True)
class UserSession:
    """登录结果。"""

    user: User
    refresh_token: str
    expires_at: datetime


@dataclass(frozen=True)
class UserAccess:
    """刷新结果；开启刷新令牌轮换时附带新的刷新令牌。"""

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None
    refresh_expires_at: datetime | None = None


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


def _stage_verification_code(db: Session, *, user: User) -> str:
    """生成验证码并把摘要加入当前事务，返回原始验证码（由调用方提交后再投递）。"""
    code = generate_otp()
    put_token(
        db,
        token_hash=hash_token(code),
        user_id=user.id,
        scope=TokenScope.VERIFICATION,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=get_settings().auth_otp_ttl_seconds),
        commit=False,
    )
    return code


def _send_verification_code(mailer: Mailer, *, user: User, code: str) -> None:
    ttl_seconds = get_settings().auth_otp_ttl_seconds
    mailer.send(
        [MailAddress(name=user.name, email=user.email)],
        VERIFY_EMAIL_TEMPLATE,
        {"code": code, "expires_in_minutes": max(1, ttl_seconds // 60)},
    )


def get_user(db: Session, *, user_id: UUID) -> User:
    """按 ID 读取用户。"""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user not found")
    return user


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    mailer: Mailer,
    password_policy: PasswordPolicy,
) -> User:
    """注册新用户（未验证状态）并发送邮箱验证码。

    用户与验证码记录在同一事务内写入，任一失败都不会留下无验证码的账号；
    邮件只在提交成功后投递。
    """
    password_policy.check(password)
    user = User(
        id=uuid4(),
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password),
        verified=False,
    )
    try:
        db.add(user)
        db.flush()
        code = _stage_verification_code(db, user=user)
        db.commit()
    except IntegrityError as exc:
        # 并发注册同一邮箱时由唯一约束裁决。
        db.rollback()
        raise DuplicateUserError("user with email already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to insert user %s: %s", redact_email(user.email), exc)
        raise FailedOperationError() from exc
    db.refresh(user)

    _send_verification_code(mailer, user=user, code=code)
    logger.info("user %s registered", user.id)
    return user


def verify_user(db: Session, *, email: str, code: str, mailer: Mailer) -> User:
    """消费邮箱验证码，将账号置为已验证。"""
    token_hash = hash_token(code.strip())
    try:
        user = find_token_owner(
            db,
            token_hash=token_hash,
            scope=TokenScope.VERIFICATION,
            email=normalize_email(email),
        )
    except NotFoundError as exc:
        raise InvalidTokenError(_INVALID_TOKEN, status_code=400) from exc

    # 先删除记录再置位，删除条数为 0 说明验证码已被并发请求消费。
    # 只删除本人的记录，其他用户摘要相同的验证码仍然有效。
    consumed = delete_token(
        db,
        token_hash=token_hash,
        scope=TokenScope.VERIFICATION,
        user_id=user.id,
        commit=False,
    )
    if consumed == 0:
        db.rollback()
        raise InvalidTokenError(_INVALID_TOKEN, status_code=400)
    user.verified = True
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to verify user %s: %s", user.id, exc)
        raise FailedOperationError() from exc
    db.refresh(user)

    address = MailAddress(name=user.name, email=user.email)
    mailer.send([address], WELCOME_EMAIL_TEMPLATE, {"name": user.name})
    logger.info("user %s verified", user.id)
    return user


def resend_verification(db: Session, *, email: str, mailer: Mailer) -> None:
    """为未验证用户重新签发验证码。"""
    normalized = normalize_email(email)
    user = db.execute(select(User).where(User.email == normalized)).scalar_one_or_none()
    if user is None:
        raise NotFoundError("user not found")
    if user.verified:
        raise AlreadyVerifiedError("user already verified")

    try:
        if get_settings().auth_otp_invalidate_previous:
            delete_tokens_for_user(db, user_id=user.id, scope=TokenScope.VERIFICATION, commit=False)
        code = _stage_verification_code(db, user=user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to reissue verification code for user %s: %s", user.id, exc)
        raise FailedOperationError() from exc
    _send_verification_code(mailer, user=user, code=code)


def create_session(db: Session, *, email: str, password: str) -> UserSession:
    """校验邮箱口令并签发刷新令牌。

    未知邮箱与口令错误返回相同错误，避免账号枚举。
    """
    user = db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()
    if user is None:
        raise InvalidCredentialsError(_INVALID_CREDENTIALS)
    if not user.verified:
        raise UnverifiedUserError("user has an unverified email")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError(_INVALID_CREDENTIALS)

    refresh_token, expires_at = issue_refresh_token(user.id, user.email)
    put_token(
        db,
        token_hash=hash_token(refresh_token),
        user_id=user.id,
        scope=TokenScope.AUTHENTICATION,
        expires_at=expires_at,
    )
    db.refresh(user)
    logger.info("session created for user %s", user.id)
    return UserSession(user=user, refresh_token=refresh_token, expires_at=expires_at)


def refresh_session(db: Session, *, refresh_token: str) -> UserAccess:
    """使用刷新令牌换取新的访问令牌。"""
    claims = validate_token(refresh_token, TokenKind.REFRESH)
    token_hash = hash_token(refresh_token)
    try:
        user = find_token_owner(
            db,
            token_hash=token_hash,
            scope=TokenScope.AUTHENTICATION,
            email=claims.email,
        )
    except NotFoundError as exc:
        # 签名有效但记录不存在：已撤销或从未签发。
        raise InvalidTokenError(_INVALID_TOKEN) from exc
    if user.id != claims.subject:
        raise InvalidTokenError(_INVALID_TOKEN)

    access_token, expires_at = issue_access_token(user.id, user.email)
    if not get_settings().auth_refresh_rotation:
        return UserAccess(access_token=access_token, expires_at=expires_at)

    if delete_token(db, token_hash=token_hash, scope=TokenScope.AUTHENTICATION, user_id=user.id) == 0:
        raise InvalidTokenError(_INVALID_TOKEN)
    new_refresh_token, refresh_expires_at = issue_refresh_token(user.id, user.email)
    put_token(
        db,
        token_hash=hash_token(new_refresh_token),
        user_id=user.id,
        scope=TokenScope.AUTHENTICATION,
        expires_at=refresh_expires_at,
    )
    return UserAccess(
        access_token=access_token,
        expires_at=expires_at,
        refresh_token=new_refresh_token,
        refresh_expires_at=refresh_expires_at,
    )


def revoke_session(db: Session, *, refresh_token: str) -> bool:
    """撤销刷新令牌（登出），返回是否删除了记录。"""
    claims = validate_token(refresh_token, TokenKind.REFRESH)
    removed = delete_token(
        db,
        token_hash=hash_token(refresh_token),
        scope=TokenScope.AUTHENTICATION,
        user_id=claims.subject,
    )
    return removed > 0


def update_profile(
    db: Session,
    *,
    user_id: UUID,
    patch: UserPatch,
    password_policy: PasswordPolicy,
) -> User:
    """按 Patch 更新用户资料，口令仅在确实变化时重新哈希。"""
    user = get_user(db, user_id=user_id)
    changed = apply_patch(user, patch, exclude=("password",))
    if is_set(patch.password):
        password_policy.check(patch.password)
        if not verify_password(patch.password, user.password_hash):
            user.password_hash = hash_password(patch.password)
            changed.append("password_hash")

    if changed:
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("failed to update user %s: %s", user_id, exc)
            raise FailedOperationError() from exc
        db.refresh(user)
    return user


def delete_user(db: Session, *, user_id: UUID) -> None:
    """硬删除用户，并在同一事务内清理其凭据、成员关系与其拥有的工作空间。"""
    try:
        result = db.execute(delete(User).where(User.id == user_id))
        if not result.rowcount:
            db.rollback()
            raise NotFoundError("user not found")

        owned_workspace_ids = list(
            db.execute(
                select(WorkspaceMembership.workspace_id)
                .where(WorkspaceMembership.user_id == user_id)
                .where(WorkspaceMembership.role == WorkspaceRole.OWNER)
            ).scalars()
        )
        purge_workspaces(db, workspace_ids=owned_workspace_ids)
        db.execute(delete(WorkspaceMembership).where(WorkspaceMembership.user_id == user_id))
        db.execute(delete(TaskAssignment).where(TaskAssignment.user_id == user_id))
        delete_tokens_for_user(db, user_id=user_id, commit=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to delete user %s: %s", user_id, exc)
        raise FailedOperationError() from exc
    logger.info("user %s deleted", user_id)
