"""项目与任务服务。

调用方负责先完成权限校验（见 `hazel_api.services.authorization`），
本模块只处理数据读写与跨实体一致性。
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hazel_api.models.enums import ProjectStatus, TaskPriority, TaskStatus
from hazel_api.models.project import Project, Task, TaskAssignment
from hazel_api.models.user import User
from hazel_api.services.authorization import get_workspace_membership
from hazel_api.services.errors import (
    DuplicateEntryError,
    FailedOperationError,
    NotFoundError,
    ServiceError,
)
from hazel_api.services.patches import ProjectPatch, TaskPatch, apply_patch, is_set

logger = logging.getLogger(__name__)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to %s: %s", action, exc)
        raise FailedOperationError() from exc


def _check_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ServiceError("end date must not be earlier than start date", status_code=422, error_code="INVALID_DATES")


def create_project(
    db: Session,
    *,
    workspace_id: UUID,
    name: str,
    description: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> Project:
    """在工作空间下创建项目，初始状态为 active。"""
    _check_date_range(start_date, end_date)
    project = Project(
        id=uuid4(),
        workspace_id=workspace_id,
        name=name,
        description=description,
        start_date=start_date,
        end_date=end_date,
        status=ProjectStatus.ACTIVE,
    )
    db.add(project)
    _commit(db, f"create project in workspace {workspace_id}")
    db.refresh(project)
    return project


def list_projects(db: Session, *, workspace_id: UUID) -> list[Project]:
    """列出工作空间下全部项目。"""
    return list(
        db.execute(select(Project).where(Project.workspace_id == workspace_id).order_by(Project.created_at)).scalars()
    )


def update_project(db: Session, *, project: Project, patch: ProjectPatch) -> Project:
    """按 Patch 更新项目，更新后的起止日期仍须有序。"""
    _check_date_range(
        patch.start_date if is_set(patch.start_date) else project.start_date,
        patch.end_date if is_set(patch.end_date) else project.end_date,
    )
    if apply_patch(project, patch):
        _commit(db, f"update project {project.id}")
        db.refresh(project)
    return project


def delete_project(db: Session, *, project: Project) -> None:
    """删除项目及其任务与指派。"""
    task_ids = select(Task.id).where(Task.project_id == project.id)
    db.execute(delete(TaskAssignment).where(TaskAssignment.task_id.in_(task_ids)))
    db.execute(delete(Task).where(Task.project_id == project.id))
    db.execute(delete(Project).where(Project.id == project.id))
    _commit(db, f"delete project {project.id}")


def create_task(
    db: Session,
    *,
    project_id: UUID,
    title: str,
    description: str | None = None,
    priority: str = TaskPriority.MEDIUM,
    due: datetime | None = None,
) -> Task:
    """在项目下创建任务，初始状态为 todo。"""
    task = Task(
        id=uuid4(),
        project_id=project_id,
        title=title,
        description=description,
        status=TaskStatus.TODO,
        priority=priority,
        due=due,
    )
    db.add(task)
    _commit(db, f"create task in project {project_id}")
    db.refresh(task)
    return task


def list_tasks(db: Session, *, project_id: UUID, status: str | None = None) -> list[Task]:
    """列出项目下任务，可按状态过滤。"""
    stmt = select(Task).where(Task.project_id == project_id)
    if status:
        stmt = stmt.where(Task.status == status)
    return list(db.execute(stmt.order_by(Task.created_at)).scalars())


def update_task(db: Session, *, task: Task, patch: TaskPatch) -> Task:
    """按 Patch 更新任务。"""
    if apply_patch(task, patch):
        _commit(db, f"update task {task.id}")
        db.refresh(task)
    return task


def delete_task(db: Session, *, task: Task) -> None:
    """删除任务及其指派。"""
    db.execute(delete(TaskAssignment).where(TaskAssignment.task_id == task.id))
    db.execute(delete(Task).where(Task.id == task.id))
    _commit(db, f"delete task {task.id}")


def assign_task(db: Session, *, task: Task, project: Project, user_id: UUID) -> TaskAssignment:
    """指派任务，被指派人必须是项目所在工作空间的成员。"""
    if db.get(User, user_id) is None:
        raise NotFoundError("user not found")
    if get_workspace_membership(db, workspace_id=project.workspace_id, user_id=user_id) is None:
        raise ServiceError("assignee is not a member of this workspace", status_code=422, error_code="NOT_A_MEMBER")

    assignment = TaskAssignment(task_id=task.id, user_id=user_id)
    try:
        db.add(assignment)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEntryError("user is already assigned to this task") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("failed to assign task %s to %s: %s", task.id, user_id, exc)
        raise FailedOperationError() from exc
    db.refresh(assignment)
    return assignment


def unassign_task(db: Session, *, task_id: UUID, user_id: UUID) -> int:
    """取消指派，返回删除条数。"""
    result = db.execute(
        delete(TaskAssignment).where(TaskAssignment.task_id == task_id).where(TaskAssignment.user_id == user_id)
    )
    _commit(db, f"unassign task {task_id}")
    return result.rowcount or 0


def list_assignees(db: Session, *, task_id: UUID) -> list[User]:
    """列出任务的被指派人。"""
    return list(
        db.execute(
            select(User)
            .join(TaskAssignment, TaskAssignment.user_id == User.id)
            .where(TaskAssignment.task_id == task_id)
            .order_by(TaskAssignment.created_at)
        ).scalars()
    )
