"""持久化凭据存取。

记录按 (摘要, 用途) 定位，过期记录在查询时被排除而不是立即删除，
可由 `purge_expired_tokens` 定期清理。每个操作独立提交。
"""

from datetime import datetime, timezone
import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hazel_api.models.user import User, UserToken
from hazel_api.services.errors import FailedOperationError, NotFoundError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def put_token(
    db: Session,
    *,
    token_hash: str,
    user_id: UUID,
    scope: str,
    expires_at: datetime,
    commit: bool = True,
) -> UserToken:
    """写入一条凭据记录，同一用户同一用途可并存多条（多设备）。

    摘要不做唯一约束，不同用户偶然生成相同验证码时各自保留记录。
    `commit=False` 时仅加入当前事务，由调用方统一提交。
    """
    record = UserToken(hash=token_hash, user_id=user_id, scope=scope, expires_at=expires_at)
    db.add(record)
    if not commit:
        return record
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to insert %s token for user %s: %s", scope, user_id, exc)
        raise FailedOperationError() from exc
    return record


def find_token_owner(db: Session, *, token_hash: str, scope: str, email: str) -> User:
    """按摘要、用途与邮箱查找未过期凭据的所属用户。"""
    stmt = (
        select(User)
        .join(UserToken, UserToken.user_id == User.id)
        .where(UserToken.hash == token_hash)
        .where(UserToken.scope == scope)
        .where(User.email == email)
        .where(UserToken.expires_at > _utcnow())
    )
    user = db.execute(stmt).scalars().first()
    if user is None:
        raise NotFoundError("token not found")
    return user


def delete_token(
    db: Session,
    *,
    token_hash: str,
    scope: str,
    user_id: UUID | None = None,
    commit: bool = True,
) -> int:
    """删除指定凭据记录，记录不存在时视为成功，返回删除条数。

    传入 `user_id` 时只删除该用户的记录，其他用户摘要相同的记录不受影响。
    """
    stmt = delete(UserToken).where(UserToken.hash == token_hash).where(UserToken.scope == scope)
    if user_id is not None:
        stmt = stmt.where(UserToken.user_id == user_id)
    try:
        result = db.execute(stmt)
        if commit:
            db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to delete %s token: %s", scope, exc)
        raise FailedOperationError() from exc
    return result.rowcount or 0


def delete_tokens_for_user(db: Session, *, user_id: UUID, scope: str | None = None, commit: bool = True) -> int:
    """删除用户的全部（或指定用途的）凭据记录。"""
    stmt = delete(UserToken).where(UserToken.user_id == user_id)
    if scope is not None:
        stmt = stmt.where(UserToken.scope == scope)
    result = db.execute(stmt)
    if commit:
        db.commit()
    return result.rowcount or 0


def purge_expired_tokens(db: Session, *, now: datetime | None = None) -> int:
    """清理已过期的凭据记录，返回删除条数。"""
    cutoff = now or _utcnow()
    result = db.execute(delete(UserToken).where(UserToken.expires_at <= cutoff))
    db.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info("purged %d expired credential records", removed)
    return removed
