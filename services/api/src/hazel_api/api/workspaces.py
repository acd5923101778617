"""工作空间管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from hazel_api.db.session import get_db
from hazel_api.dependencies import get_current_user_id
from hazel_api.models.enums import WorkspaceRole
from hazel_api.models.workspace import Workspace
from hazel_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from hazel_api.schemas.project import ProjectData
from hazel_api.schemas.workspace import (
    WorkspaceCreateRequest,
    WorkspaceData,
    WorkspaceMemberAddRequest,
    WorkspaceMemberData,
    WorkspaceUpdateRequest,
)
from hazel_api.services import (
    WORKSPACE_MANAGE_ROLES,
    WORKSPACE_OWNER_ROLES,
    WORKSPACE_READ_ROLES,
    ensure_workspace_access,
)
from hazel_api.services.errors import ForbiddenError
from hazel_api.services.identity import get_user
from hazel_api.services.patches import WorkspacePatch
from hazel_api.services.projects import list_projects
from hazel_api.services.workspaces import (
    add_member,
    create_workspace,
    delete_workspace,
    list_members,
    list_workspaces_for_user,
    remove_member,
    update_workspace,
)
from hazel_api.utils.response import success

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _workspace_data(workspace: Workspace, role: str | None) -> WorkspaceData:
    data = WorkspaceData.model_validate(workspace)
    data.role = role
    return data


@router.post(
    "",
    summary="创建工作空间",
    description="创建工作空间，并在同一事务内将创建者设为 owner。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[WorkspaceData],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def create_workspace_endpoint(
    payload: WorkspaceCreateRequest,
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """创建工作空间并初始化创建者成员关系。"""
    workspace = create_workspace(db, name=payload.name, description=payload.description, owner_id=user_id)
    return success(request, _workspace_data(workspace, WorkspaceRole.OWNER))


@router.get(
    "",
    summary="查询我的工作空间",
    description="返回当前用户拥有成员关系的全部工作空间。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceData]],
    responses={401: {"model": ErrorResponse}},
)
@router.get(
    "/me",
    summary="查询我的工作空间（别名）",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceData]],
    responses={401: {"model": ErrorResponse}},
)
def list_workspaces(
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询当前用户可访问的工作空间。"""
    rows = list_workspaces_for_user(db, user_id=user_id)
    return success(request, [_workspace_data(workspace, role) for workspace, role in rows])


@router.get(
    "/{workspace_id}",
    summary="查询工作空间详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_workspace_endpoint(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询工作空间详情（任一成员可读）。"""
    workspace, membership = ensure_workspace_access(db, workspace_id=workspace_id, user_id=user_id)
    return success(request, _workspace_data(workspace, membership.role))


@router.patch(
    "/{workspace_id}",
    summary="更新工作空间",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_workspace_endpoint(
    payload: WorkspaceUpdateRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """更新工作空间名称与说明（owner/admin）。"""
    workspace, membership = ensure_workspace_access(
        db,
        workspace_id=workspace_id,
        user_id=user_id,
        roles=WORKSPACE_MANAGE_ROLES,
    )
    patch = WorkspacePatch(**payload.model_dump(exclude_unset=True))
    workspace = update_workspace(db, workspace=workspace, patch=patch)
    return success(request, _workspace_data(workspace, membership.role))


@router.delete(
    "/{workspace_id}",
    summary="删除工作空间",
    description="删除工作空间及其成员、项目、任务与指派，仅 owner 可操作。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_workspace_endpoint(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """删除工作空间。"""
    ensure_workspace_access(db, workspace_id=workspace_id, user_id=user_id, roles=WORKSPACE_OWNER_ROLES)
    delete_workspace(db, workspace_id=workspace_id)
    return success(request, {"deleted": True})


@router.post(
    "/{workspace_id}/members",
    summary="新增工作空间成员",
    description="owner/admin 可添加成员；授予 admin 角色仅 owner 可操作；owner 角色不可授予。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[WorkspaceMemberData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def add_workspace_member(
    payload: WorkspaceMemberAddRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """新增工作空间成员。"""
    _, membership = ensure_workspace_access(
        db,
        workspace_id=workspace_id,
        user_id=user_id,
        roles=WORKSPACE_MANAGE_ROLES,
    )
    if payload.role == WorkspaceRole.ADMIN and membership.role != WorkspaceRole.OWNER:
        raise ForbiddenError("only the workspace owner can grant the admin role")

    added = add_member(db, workspace_id=workspace_id, user_id=payload.user_id, role=payload.role)
    member = get_user(db, user_id=added.user_id)
    return success(
        request,
        {
            "workspace_id": workspace_id,
            "user_id": member.id,
            "name": member.name,
            "email": member.email,
            "role": added.role,
        },
    )


@router.get(
    "/{workspace_id}/members",
    summary="查询工作空间成员",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceMemberData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def list_workspace_members(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询工作空间成员列表（任一成员可读）。"""
    ensure_workspace_access(db, workspace_id=workspace_id, user_id=user_id)
    data = [
        {
            "workspace_id": workspace_id,
            "user_id": member.id,
            "name": member.name,
            "email": member.email,
            "role": role,
        }
        for member, role in list_members(db, workspace_id=workspace_id)
    ]
    return success(request, data)


@router.delete(
    "/{workspace_id}/members/{member_user_id}",
    summary="移除工作空间成员",
    description="owner/admin 可移除成员，成员也可以移除自己；owner 成员关系不会被移除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def remove_workspace_member(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    member_user_id: UUID = Path(..., description="待移除成员的用户 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """移除工作空间成员。"""
    roles = WORKSPACE_READ_ROLES if member_user_id == user_id else WORKSPACE_MANAGE_ROLES
    ensure_workspace_access(db, workspace_id=workspace_id, user_id=user_id, roles=roles)
    removed = remove_member(db, workspace_id=workspace_id, user_id=member_user_id)
    return success(request, {"deleted": removed > 0})


@router.get(
    "/{workspace_id}/projects",
    summary="查询工作空间项目",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[ProjectData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def list_workspace_projects(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """查询工作空间下的项目（任一成员可读）。"""
    ensure_workspace_access(db, workspace_id=workspace_id, user_id=user_id)
    projects = list_projects(db, workspace_id=workspace_id)
    return success(request, [ProjectData.model_validate(project) for project in projects])
