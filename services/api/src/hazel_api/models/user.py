"""用户与持久化凭据模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from hazel_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户实体。"""

    __tablename__ = "users"

    # 展示名。
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 登录与通知邮箱，全局唯一，入库前统一小写。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    # 头像地址。
    profile_photo: Mapped[str | None] = mapped_column(String(512))
    # 是否已完成邮箱验证。
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class UserToken(Base, UUIDPrimaryKeyMixin):
    """持久化凭据记录（验证码 / 刷新令牌）。

    仅保存原始凭据的摘要，数据库泄露不会得到可用凭据。
    摘要不唯一：不同用户的验证码可能相同，查找时同时比对邮箱。
    """

    __tablename__ = "user_tokens"
    __table_args__ = (
        Index("ix_user_tokens_hash_scope", "hash", "scope"),
        Index("ix_user_tokens_user_scope", "user_id", "scope"),
    )

    # 原始凭据的十六进制 SHA-256 摘要。
    hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # 凭据用途（verification/authentication）。
    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    # 所属用户 ID（逻辑关联 users.id）。
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    # 过期时间，过期记录在查询时被排除。
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间。"
    )
