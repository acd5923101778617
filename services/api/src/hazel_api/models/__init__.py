"""ORM 模型导出集合。"""

from hazel_api.models.project import Project, Task, TaskAssignment
from hazel_api.models.user import User, UserToken
from hazel_api.models.workspace import Workspace, WorkspaceMembership

__all__ = [
    "Project",
    "Task",
    "TaskAssignment",
    "User",
    "UserToken",
    "Workspace",
    "WorkspaceMembership",
]
