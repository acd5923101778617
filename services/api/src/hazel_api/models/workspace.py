"""工作空间模型。"""

from uuid import UUID

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hazel_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from hazel_api.models.enums import WorkspaceRole


class Workspace(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作空间实体，项目与任务的协作隔离边界。"""

    __tablename__ = "workspaces"

    # 工作空间名称。
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 可选描述。
    description: Mapped[str | None] = mapped_column(Text)
    # 创建者（初始 owner）用户 ID。
    owner_id: Mapped[UUID] = mapped_column(nullable=False, index=True)


class WorkspaceMembership(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作空间成员关系，工作空间级授权的基本单元。"""

    __tablename__ = "workspace_memberships"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uk_workspace_membership"),)

    workspace_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 成员角色（owner/admin/member/viewer）。
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=WorkspaceRole.MEMBER)
