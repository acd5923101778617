"""项目与任务相关请求与返回结构。

日期字段使用 `YYYY-MM-DD`，截止时间使用 ISO 8601 时间串。
"""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from hazel_api.schemas.common import BaseSchema, PatchRequest

ProjectStatusLiteral = Literal["active", "on_hold", "completed", "archived"]
TaskStatusLiteral = Literal["todo", "started", "complete"]
TaskPriorityLiteral = Literal["low", "medium", "high"]


class ProjectCreateRequest(BaseModel):
    """创建项目请求体。"""

    workspace_id: UUID = Field(description="所属工作空间 ID。")
    name: str = Field(min_length=1, max_length=128, description="项目名称。", examples=["Website redesign"])
    description: str | None = Field(default=None, description="项目说明。")
    start_date: date | None = Field(default=None, description="开始日期。", examples=["2026-01-05"])
    end_date: date | None = Field(default=None, description="结束日期。", examples=["2026-03-31"])


class ProjectUpdateRequest(PatchRequest):
    """更新项目请求体。"""

    non_nullable_fields = frozenset({"name", "status"})

    name: str | None = Field(default=None, min_length=1, max_length=128, description="新的项目名称。")
    description: str | None = Field(default=None, description="新的项目说明。")
    start_date: date | None = Field(default=None, description="新的开始日期。")
    end_date: date | None = Field(default=None, description="新的结束日期。")
    status: ProjectStatusLiteral | None = Field(default=None, description="项目状态。")


class ProjectData(BaseSchema):
    """项目详情。"""

    id: UUID = Field(description="项目 ID。")
    workspace_id: UUID = Field(description="所属工作空间 ID。")
    name: str = Field(description="项目名称。")
    description: str | None = Field(default=None, description="项目说明。")
    start_date: date | None = Field(default=None, description="开始日期。")
    end_date: date | None = Field(default=None, description="结束日期。")
    status: str = Field(description="项目状态。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="最近修改时间。")


class TaskCreateRequest(BaseModel):
    """创建任务请求体。"""

    project_id: UUID = Field(description="所属项目 ID。")
    title: str = Field(min_length=1, max_length=256, description="任务标题。", examples=["Draft landing page"])
    description: str | None = Field(default=None, description="任务说明。")
    priority: TaskPriorityLiteral = Field(default="medium", description="任务优先级。")
    due: datetime | None = Field(default=None, description="截止时间。")


class TaskUpdateRequest(PatchRequest):
    """更新任务请求体。"""

    non_nullable_fields = frozenset({"title", "status", "priority"})

    title: str | None = Field(default=None, min_length=1, max_length=256, description="新的任务标题。")
    description: str | None = Field(default=None, description="新的任务说明。")
    status: TaskStatusLiteral | None = Field(default=None, description="任务状态。")
    priority: TaskPriorityLiteral | None = Field(default=None, description="任务优先级。")
    due: datetime | None = Field(default=None, description="新的截止时间。")


class TaskData(BaseSchema):
    """任务详情。"""

    id: UUID = Field(description="任务 ID。")
    project_id: UUID = Field(description="所属项目 ID。")
    title: str = Field(description="任务标题。")
    description: str | None = Field(default=None, description="任务说明。")
    status: str = Field(description="任务状态。")
    priority: str = Field(description="任务优先级。")
    due: datetime | None = Field(default=None, description="截止时间。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="最近修改时间。")


class TaskAssignRequest(BaseModel):
    """任务指派请求体。"""

    user_id: UUID = Field(description="被指派用户 ID，必须是工作空间成员。")


class TaskAssigneeData(BaseSchema):
    """任务被指派人视图。"""

    task_id: UUID = Field(description="任务 ID。")
    user_id: UUID = Field(description="被指派用户 ID。")
    name: str = Field(description="被指派人展示名。")
    email: str = Field(description="被指派人邮箱。")
