"""项目管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.dependencies import get_current_user_id
from hazel_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from hazel_api.schemas.project import (
    ProjectCreateRequest,
    ProjectData,
    ProjectUpdateRequest,
    TaskData,
    TaskStatusLiteral,
)
from hazel_api.services import WORKSPACE_WRITE_ROLES, ensure_project_access, ensure_workspace_access
from hazel_api.services.patches import ProjectPatch
from hazel_api.services.projects import create_project, delete_project, list_tasks, update_project
from hazel_api.utils.response import success

router = APIRouter(prefix="/projects", tags=["projects"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "",
    summary="创建项目",
    description="在工作空间下创建项目，需要 owner/admin/member 角色。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[ProjectData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def create_project_endpoint(
    payload: ProjectCreateRequest,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """创建项目。"""
    ensure_workspace_access(db, workspace_id=payload.workspace_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    project = create_project(
        db,
        workspace_id=payload.workspace_id,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return success(request, ProjectData.model_validate(project))


@router.get(
    "/{project_id}",
    summary="查询项目详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProjectData],
    responses=_ERRORS,
)
def get_project_endpoint(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询项目详情。"""
    project, _ = ensure_project_access(db, project_id=project_id, user_id=user_id)
    return success(request, ProjectData.model_validate(project))


@router.patch(
    "/{project_id}",
    summary="更新项目",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProjectData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def update_project_endpoint(
    payload: ProjectUpdateRequest,
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """更新项目。"""
    project, _ = ensure_project_access(db, project_id=project_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    patch = ProjectPatch(**payload.model_dump(exclude_unset=True))
    project = update_project(db, project=project, patch=patch)
    return success(request, ProjectData.model_validate(project))


@router.delete(
    "/{project_id}",
    summary="删除项目",
    description="删除项目及其任务与指派。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_ERRORS,
)
def delete_project_endpoint(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """删除项目。"""
    project, _ = ensure_project_access(db, project_id=project_id, user_id=user_id, roles=WORKSPACE_WRITE_ROLES)
    delete_project(db, project=project)
    return success(request, {"deleted": True})


@router.get(
    "/{project_id}/tasks",
    summary="查询项目任务",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[TaskData]],
    responses=_ERRORS,
)
def list_project_tasks(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    task_status: TaskStatusLiteral | None = Query(default=None, alias="status", description="按任务状态过滤。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询项目下的任务。"""
    ensure_project_access(db, project_id=project_id, user_id=user_id)
    tasks = list_tasks(db, project_id=project_id, status=task_status)
    return success(request, [TaskData.model_validate(task) for task in tasks])
