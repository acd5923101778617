"""项目与任务模型。"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hazel_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from hazel_api.models.enums import ProjectStatus, TaskPriority, TaskStatus


class Project(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """项目实体，隶属于某个工作空间。"""

    __tablename__ = "projects"

    workspace_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=ProjectStatus.ACTIVE)


class Task(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """任务实体，隶属于某个项目。"""

    __tablename__ = "tasks"

    project_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=TaskStatus.TODO)
    priority: Mapped[str] = mapped_column(String(32), nullable=False, default=TaskPriority.MEDIUM)
    due: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class TaskAssignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """任务指派关系。"""

    __tablename__ = "task_assignments"
    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uk_task_assignment"),)

    task_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
