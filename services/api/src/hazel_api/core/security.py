"""令牌签发、校验与认证头解析。

访问令牌与刷新令牌均为 HS256 签名的 JWT，声明中携带 `token_type`
区分用途。校验失败的各种原因（签名错误、格式错误、类型不符、过期）
统一折叠为 `InvalidTokenError`，不向调用方暴露具体原因。
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum
import logging
import re
from typing import Any
from uuid import UUID, uuid4

import jwt

from hazel_api.core.config import get_settings
from hazel_api.services.errors import InvalidTokenError, SigningError

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"^\s*Bearer\s+([^\s,]+)\s*$", flags=re.IGNORECASE)
_REQUIRED_CLAIMS = ["sub", "email", "token_type", "iat", "exp"]


class TokenKind(StrEnum):
    """令牌用途标识。"""

    ACCESS = "ACCESS"  # 短期访问令牌，不落库。
    REFRESH = "REFRESH"  # 长期刷新令牌，摘要落库以支持撤销。


@dataclass(frozen=True)
class TokenClaims:
    """令牌解码后的声明集合。"""

    # 令牌主体（用户 ID）。
    subject: UUID
    # 签发时写入的用户邮箱。
    email: str
    # 令牌用途。
    kind: TokenKind
    # 签发时间（UTC）。
    issued_at: datetime
    # 过期时间（UTC）。
    expires_at: datetime


def _signing_key() -> str:
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise SigningError("token signing key is not configured")
    return settings.auth_jwt_secret


def issue_token(
    subject_id: UUID,
    email: str,
    kind: TokenKind,
    ttl: timedelta,
    *,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """签发指定用途的令牌，返回令牌串与过期时间。"""
    settings = get_settings()
    key = _signing_key()
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued_at + ttl

    claims: dict[str, Any] = {
        "sub": str(subject_id),
        "email": email,
        "token_type": str(kind),
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        # 同一秒内重复签发时保证令牌串（及其摘要）唯一。
        "jti": uuid4().hex,
    }
    if settings.auth_jwt_issuer:
        claims["iss"] = settings.auth_jwt_issuer

    try:
        token = jwt.encode(claims, key, algorithm=settings.auth_jwt_algorithm)
    except (jwt.PyJWTError, NotImplementedError, TypeError) as exc:
        logger.error("failed to sign %s token: %s", kind, exc)
        raise SigningError() from exc
    return token, expires_at


def issue_access_token(subject_id: UUID, email: str) -> tuple[str, datetime]:
    """签发访问令牌。"""
    settings = get_settings()
    return issue_token(
        subject_id,
        email,
        TokenKind.ACCESS,
        timedelta(seconds=settings.auth_access_token_ttl_seconds),
    )


def issue_refresh_token(subject_id: UUID, email: str) -> tuple[str, datetime]:
    """签发刷新令牌。"""
    settings = get_settings()
    return issue_token(
        subject_id,
        email,
        TokenKind.REFRESH,
        timedelta(seconds=settings.auth_refresh_token_ttl_seconds),
    )


def validate_token(token: str, expected_kind: TokenKind) -> TokenClaims:
    """校验签名、过期时间与用途，返回声明。"""
    settings = get_settings()
    key = _signing_key()
    try:
        claims = jwt.decode(
            token,
            key=key,
            algorithms=[settings.auth_jwt_algorithm],
            issuer=settings.auth_jwt_issuer,
            leeway=settings.auth_jwt_leeway_seconds,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as exc:
        raise InvalidTokenError("token is invalid or expired") from exc

    # 签名有效但用途不符同样拒绝，防止刷新令牌被当作访问令牌重放。
    if claims.get("token_type") != str(expected_kind):
        raise InvalidTokenError("token is invalid or expired")

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        raise InvalidTokenError("token is invalid or expired")
    try:
        subject = UUID(str(claims["sub"]))
        issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError("token is invalid or expired") from exc

    return TokenClaims(
        subject=subject,
        email=email,
        kind=expected_kind,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def extract_bearer_token(authorization: str | None) -> str:
    """从 Authorization 头中提取 Bearer 令牌。"""
    if not authorization:
        raise InvalidTokenError("authorization header missing or malformed")
    match = _BEARER_PATTERN.match(authorization)
    if not match:
        raise InvalidTokenError("authorization header missing or malformed")
    return match.group(1)
