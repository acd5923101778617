"""注册、验证、登录与令牌刷新请求结构。"""

from datetime import datetime

from pydantic import BaseModel, Field

from hazel_api.schemas.common import BaseSchema
from hazel_api.schemas.user import UserData

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _email_field(**kwargs):
    return Field(
        min_length=5,
        max_length=256,
        pattern=_EMAIL_PATTERN,
        description="登录邮箱。",
        examples=["alice@example.com"],
        **kwargs,
    )


class AuthRegisterRequest(BaseModel):
    """注册请求。口令长度由服务端口令策略校验。"""

    name: str = Field(min_length=1, max_length=128, description="展示名。", examples=["Alice Chen"])
    email: str = _email_field()
    password: str = Field(min_length=1, max_length=128, description="登录密码（8-20 位）。", examples=["Passw0rd!"])


class AuthVerifyRequest(BaseModel):
    """邮箱验证请求。"""

    email: str = _email_field()
    code: str = Field(pattern=r"^\d{6}$", description="邮件中的 6 位验证码。", examples=["042917"])


class AuthResendRequest(BaseModel):
    """重新发送验证码请求。"""

    email: str = _email_field()


class AuthLoginRequest(BaseModel):
    """登录请求。"""

    email: str = _email_field()
    password: str = Field(min_length=1, max_length=128, description="登录密码。", examples=["Passw0rd!"])


class AuthRefreshRequest(BaseModel):
    """刷新令牌请求（换取访问令牌或登出）。"""

    refresh_token: str = Field(min_length=1, description="登录时签发的刷新令牌。")


class AuthLoginData(BaseSchema):
    """登录结果结构。"""

    user: UserData = Field(description="当前登录用户。")
    refresh_token: str = Field(description="刷新令牌，用于换取访问令牌。")
    expires_at: datetime = Field(description="刷新令牌过期时间（UTC）。")


class AuthAccessData(BaseSchema):
    """访问令牌结果结构。"""

    access_token: str = Field(description="访问令牌。")
    token_type: str = Field(default="bearer", description="令牌类型。")
    expires_at: datetime = Field(description="访问令牌过期时间（UTC）。")
    expires_in: int = Field(description="距过期剩余秒数。")
    refresh_token: str | None = Field(default=None, description="开启刷新令牌轮换时返回的新刷新令牌。")
    refresh_expires_at: datetime | None = Field(default=None, description="新刷新令牌过期时间（UTC）。")


class AuthLogoutData(BaseSchema):
    """登出结果结构。"""

    logged_out: bool = Field(description="是否已完成登出。")
    revoked: bool = Field(description="刷新令牌记录是否被删除（重复登出时为 false）。")
