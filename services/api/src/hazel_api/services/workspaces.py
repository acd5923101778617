"""工作空间与成员关系服务。"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hazel_api.models.enums import WorkspaceRole
from hazel_api.models.project import Project, Task, TaskAssignment
from hazel_api.models.user import User
from hazel_api.models.workspace import Workspace, WorkspaceMembership
from hazel_api.services.errors import DuplicateEntryError, FailedOperationError, NotFoundError
from hazel_api.services.patches import WorkspacePatch, apply_patch

logger = logging.getLogger(__name__)


def create_workspace(
    db: Session,
    *,
    name: str,
    description: str | None,
    owner_id: UUID,
) -> Workspace:
    """创建工作空间并在同一事务内写入 owner 成员关系。

    任一写入失败时整体回滚，不会留下没有 owner 的工作空间，
    也不会留下指向不存在工作空间的成员关系。
    """
    workspace = Workspace(id=uuid4(), name=name, description=description, owner_id=owner_id)
    try:
        db.add(workspace)
        db.flush()
        db.add(
            WorkspaceMembership(
                workspace_id=workspace.id,
                user_id=owner_id,
                role=WorkspaceRole.OWNER,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to create workspace for owner %s: %s", owner_id, exc)
        raise FailedOperationError() from exc
    db.refresh(workspace)
    logger.info("workspace %s created by %s", workspace.id, owner_id)
    return workspace


def get_workspace(db: Session, *, workspace_id: UUID) -> Workspace:
    """按 ID 读取工作空间。"""
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFoundError("workspace not found")
    return workspace


def list_workspaces_for_user(db: Session, *, user_id: UUID) -> list[tuple[Workspace, str]]:
    """返回用户拥有成员关系的全部工作空间及其角色。"""
    rows = db.execute(
        select(Workspace, WorkspaceMembership.role)
        .join(WorkspaceMembership, WorkspaceMembership.workspace_id == Workspace.id)
        .where(WorkspaceMembership.user_id == user_id)
        .order_by(Workspace.created_at)
    ).all()
    return [(workspace, role) for workspace, role in rows]


def update_workspace(db: Session, *, workspace: Workspace, patch: WorkspacePatch) -> Workspace:
    """按 Patch 更新工作空间基础信息。"""
    changed = apply_patch(workspace, patch)
    if changed:
        db.commit()
        db.refresh(workspace)
    return workspace


def purge_workspaces(db: Session, *, workspace_ids: list[UUID]) -> None:
    """删除工作空间及其成员、项目、任务与指派（不提交事务）。"""
    if not workspace_ids:
        return
    project_ids = select(Project.id).where(Project.workspace_id.in_(workspace_ids))
    task_ids = select(Task.id).where(Task.project_id.in_(project_ids))
    db.execute(delete(TaskAssignment).where(TaskAssignment.task_id.in_(task_ids)))
    db.execute(delete(Task).where(Task.project_id.in_(project_ids)))
    db.execute(delete(Project).where(Project.workspace_id.in_(workspace_ids)))
    db.execute(delete(WorkspaceMembership).where(WorkspaceMembership.workspace_id.in_(workspace_ids)))
    db.execute(delete(Workspace).where(Workspace.id.in_(workspace_ids)))


def delete_workspace(db: Session, *, workspace_id: UUID) -> None:
    """删除工作空间及其全部下属数据。"""
    get_workspace(db, workspace_id=workspace_id)
    try:
        purge_workspaces(db, workspace_ids=[workspace_id])
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to delete workspace %s: %s", workspace_id, exc)
        raise FailedOperationError() from exc


def add_member(db: Session, *, workspace_id: UUID, user_id: UUID, role: str) -> WorkspaceMembership:
    """新增工作空间成员。"""
    if db.get(User, user_id) is None:
        raise NotFoundError("user not found")

    membership = WorkspaceMembership(workspace_id=workspace_id, user_id=user_id, role=role)
    try:
        db.add(membership)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEntryError("user is already a member of this workspace") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to add member %s to workspace %s: %s", user_id, workspace_id, exc)
        raise FailedOperationError() from exc
    db.refresh(membership)
    return membership


def remove_member(db: Session, *, workspace_id: UUID, user_id: UUID) -> int:
    """移除非 owner 成员，返回删除条数。

    删除条件中排除 owner 角色，owner 成员关系无法经由此路径删除。
    """
    result = db.execute(
        delete(WorkspaceMembership)
        .where(WorkspaceMembership.workspace_id == workspace_id)
        .where(WorkspaceMembership.user_id == user_id)
        .where(WorkspaceMembership.role != WorkspaceRole.OWNER)
    )
    db.commit()
    return result.rowcount or 0


def list_members(db: Session, *, workspace_id: UUID) -> list[tuple[User, str]]:
    """返回工作空间成员及其角色。"""
    rows = db.execute(
        select(User, WorkspaceMembership.role)
        .join(WorkspaceMembership, WorkspaceMembership.user_id == User.id)
        .where(WorkspaceMembership.workspace_id == workspace_id)
        .order_by(WorkspaceMembership.created_at)
    ).all()
    return [(user, role) for user, role in rows]
