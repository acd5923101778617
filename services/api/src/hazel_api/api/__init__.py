"""路由模块导出集合。"""

from . import auth, health, projects, tasks, users, workspaces

__all__ = ["auth", "health", "projects", "tasks", "users", "workspaces"]
