"""工作空间相关请求与返回结构。"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from hazel_api.schemas.common import BaseSchema, PatchRequest


class WorkspaceCreateRequest(BaseModel):
    """创建工作空间请求体。创建者即 owner。"""

    name: str = Field(min_length=2, max_length=128, description="工作空间名称。", examples=["Product Team"])
    description: str | None = Field(default=None, description="工作空间说明。", examples=["Roadmap and releases"])


class WorkspaceUpdateRequest(PatchRequest):
    """更新工作空间请求体。"""

    non_nullable_fields = frozenset({"name"})

    name: str | None = Field(default=None, min_length=2, max_length=128, description="新的工作空间名称。")
    description: str | None = Field(default=None, description="新的工作空间说明。")


class WorkspaceMemberAddRequest(BaseModel):
    """新增工作空间成员请求体。owner 角色不可通过此接口授予。"""

    user_id: UUID = Field(description="目标用户 ID。")
    role: Literal["admin", "member", "viewer"] = Field(
        default="member",
        description="需要授予的工作空间角色。",
        examples=["member"],
    )


class WorkspaceData(BaseSchema):
    """工作空间详情。"""

    id: UUID = Field(description="工作空间 ID。")
    name: str = Field(description="工作空间名称。")
    description: str | None = Field(default=None, description="工作空间说明。")
    owner_id: UUID = Field(description="创建者（owner）用户 ID。")
    role: str | None = Field(default=None, description="当前用户在该工作空间中的角色。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="最近修改时间。")


class WorkspaceMemberData(BaseSchema):
    """工作空间成员视图。"""

    workspace_id: UUID = Field(description="工作空间 ID。")
    user_id: UUID = Field(description="成员用户 ID。")
    name: str = Field(description="成员展示名。")
    email: str = Field(description="成员邮箱。")
    role: str = Field(description="成员角色。")
