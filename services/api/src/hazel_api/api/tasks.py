"""任务与任务指派接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.dependencies import get_current_user_id
from hazel_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from hazel_api.schemas.project import (
    TaskAssigneeData,
    TaskAssignRequest,
    TaskCreateRequest,
    TaskData,
    TaskUpdateRequest,
)
from hazel_api.services import WORKSPACE_WRITE_ROLES, ensure_project_access, ensure_task_access
from hazel_api.services.identity import get_user
from hazel_api.services.patches import TaskPatch
from hazel_api.services.projects import (
    assign_task,
    create_task,
    delete_task,
    list_assignees,
    unassign_task,
    update_task,
)
from hazel_api.utils.response import success

router = APIRouter(prefix="/tasks", tags=["tasks"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "",
    summary="创建任务",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[TaskData],
    responses=_ERRORS,
)
def create_task_endpoint(
    payload: TaskCreateRequest,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """在项目下创建任务。"""
    ensure_project_access(db, project_id=payload.project_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    task = create_task(
        db,
        project_id=payload.project_id,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        due=payload.due,
    )
    return success(request, TaskData.model_validate(task))


@router.get(
    "/{task_id}",
    summary="查询任务详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_ERRORS,
)
def get_task_endpoint(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询任务详情。"""
    task, _ = ensure_task_access(db, task_id=task_id, user_id=user_id)
    return success(request, TaskData.model_validate(task))


@router.patch(
    "/{task_id}",
    summary="更新任务",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_ERRORS,
)
def update_task_endpoint(
    payload: TaskUpdateRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """更新任务。"""
    task, _ = ensure_task_access(db, task_id=task_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    patch = TaskPatch(**payload.model_dump(exclude_unset=True))
    task = update_task(db, task=task, patch=patch)
    return success(request, TaskData.model_validate(task))


@router.delete(
    "/{task_id}",
    summary="删除任务",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_ERRORS,
)
def delete_task_endpoint(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """删除任务及其指派。"""
    task, _ = ensure_task_access(db, task_id=task_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    delete_task(db, task=task)
    return success(request, {"deleted": True})


@router.post(
    "/{task_id}/assignments",
    summary="指派任务",
    description="被指派人必须是任务所在工作空间的成员。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[TaskAssigneeData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def assign_task_endpoint(
    payload: TaskAssignRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """指派任务。"""
    task, project = ensure_task_access(db, task_id=task_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    assignment = assign_task(db, task=task, project=project, user_id=payload.user_id)
    assignee = get_user(db, user_id=assignment.user_id)
    return success(
        request,
        {"task_id": task_id, "user_id": assignee.id, "name": assignee.name, "email": assignee.email},
    )


@router.get(
    "/{task_id}/assignments",
    summary="查询任务指派",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[TaskAssigneeData]],
    responses=_ERRORS,
)
def list_task_assignments(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询任务的被指派人。"""
    ensure_task_access(db, task_id=task_id, user_id=user_id)
    data = [
        {"task_id": task_id, "user_id": assignee.id, "name": assignee.name, "email": assignee.email}
        for assignee in list_assignees(db, task_id=task_id)
    ]
    return success(request, data)


@router.delete(
    "/{task_id}/assignments/{assignee_id}",
    summary="取消任务指派",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_ERRORS,
)
def unassign_task_endpoint(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    assignee_id: UUID = Path(..., description="被指派用户 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """取消任务指派。"""
    ensure_task_access(db, task_id=task_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    removed = unassign_task(db, task_id=task_id, user_id=assignee_id)
    return success(request, {"deleted": removed > 0})
