"""领域枚举定义。"""

from enum import StrEnum


class TokenScope(StrEnum):
    """持久化凭据用途。"""

    VERIFICATION = "verification"  # 邮箱验证码，使用一次即删除。
    AUTHENTICATION = "authentication"  # 刷新令牌，可多次换取访问令牌直至过期或撤销。


class WorkspaceRole(StrEnum):
    """工作空间角色。"""

    OWNER = "owner"  # 工作空间所有者，随工作空间创建，不可通过移除成员删除。
    ADMIN = "admin"  # 管理员，可管理成员与工作空间信息。
    MEMBER = "member"  # 普通成员，可维护项目与任务。
    VIEWER = "viewer"  # 只读成员。


class ProjectStatus(StrEnum):
    """项目状态。"""

    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskStatus(StrEnum):
    """任务状态。"""

    TODO = "todo"
    STARTED = "started"
    COMPLETE = "complete"


class TaskPriority(StrEnum):
    """任务优先级。"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
