"""工作空间级权限校验服务。

统一封装工作空间、项目、任务的读写权限判断，
避免路由层重复拼装授权 SQL 导致规则不一致。
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hazel_api.models.enums import WorkspaceRole
from hazel_api.models.project import Project, Task
from hazel_api.models.workspace import Workspace, WorkspaceMembership
from hazel_api.services.errors import ForbiddenError, NotFoundError

# 工作空间读权限角色集合（任一成员）。
WORKSPACE_READ_ROLES = frozenset(WorkspaceRole)
# 工作空间写权限角色集合（项目、任务增删改）。
WORKSPACE_WRITE_ROLES = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN, WorkspaceRole.MEMBER})
# 工作空间管理角色集合（成员管理、修改工作空间）。
WORKSPACE_MANAGE_ROLES = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN})
# 仅 owner（删除工作空间、授予 admin）。
WORKSPACE_OWNER_ROLES = frozenset({WorkspaceRole.OWNER})


def get_workspace_membership(db: Session, *, workspace_id: UUID, user_id: UUID) -> WorkspaceMembership | None:
    """查询用户在工作空间中的成员关系。"""
    return db.execute(
        select(WorkspaceMembership)
        .where(WorkspaceMembership.workspace_id == workspace_id)
        .where(WorkspaceMembership.user_id == user_id)
    ).scalar_one_or_none()


def ensure_workspace_access(
    db: Session,
    *,
    workspace_id: UUID,
    user_id: UUID,
    roles: frozenset[str] = WORKSPACE_READ_ROLES,
) -> tuple[Workspace, WorkspaceMembership]:
    """校验工作空间权限。

    判定规则：
    1. 工作空间必须存在，否则 404。
    2. 当前用户必须是成员且角色落在 `roles` 中，否则 403。
    """
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFoundError("workspace not found")

    membership = get_workspace_membership(db, workspace_id=workspace_id, user_id=user_id)
    if membership is None or membership.role not in roles:
        raise ForbiddenError()
    return workspace, membership


def ensure_project_access(
    db: Session,
    *,
    project_id: UUID,
    user_id: UUID,
    roles: frozenset[str] = WORKSPACE_READ_ROLES,
) -> tuple[Project, WorkspaceMembership]:
    """校验项目权限（项目 -> 工作空间）。"""
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError("project not found")
    _, membership = ensure_workspace_access(
        db,
        workspace_id=project.workspace_id,
        user_id=user_id,
        roles=roles,
    )
    return project, membership


def ensure_task_access(
    db: Session,
    *,
    task_id: UUID,
    user_id: UUID,
    roles: frozenset[str] = WORKSPACE_READ_ROLES,
) -> tuple[Task, Project]:
    """校验任务权限（任务 -> 项目 -> 工作空间）。"""
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError("task not found")
    project, _ = ensure_project_access(db, project_id=task.project_id, user_id=user_id, roles=roles)
    return task, project
