"""用户资料相关结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from hazel_api.schemas.common import BaseSchema, PatchRequest


class UserData(BaseSchema):
    """对外展示的用户资料，不含口令哈希。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
    profile_photo: str | None = Field(default=None, description="头像地址。")
    verified: bool = Field(description="是否已完成邮箱验证。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="最近修改时间。")


class UserUpdateRequest(PatchRequest):
    """更新用户资料请求体，只更新携带的字段。"""

    non_nullable_fields = frozenset({"name", "password"})

    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="新的展示名。",
        examples=["Alice Chen"],
    )
    profile_photo: str | None = Field(
        default=None,
        max_length=512,
        description="新的头像地址。",
        examples=["https://cdn.example.com/avatar/alice.png"],
    )
    password: str | None = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="新的登录密码（8-20 位）。",
    )
