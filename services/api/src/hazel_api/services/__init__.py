"""服务层能力导出集合。"""

from hazel_api.services.authorization import (
    WORKSPACE_MANAGE_ROLES,
    WORKSPACE_OWNER_ROLES,
    WORKSPACE_READ_ROLES,
    WORKSPACE_WRITE_ROLES,
    ensure_project_access,
    ensure_task_access,
    ensure_workspace_access,
)
from hazel_api.services.mailer import MailAddress, MailDispatcher, Mailer, SmtpTransport

__all__ = [
    "WORKSPACE_MANAGE_ROLES",
    "WORKSPACE_OWNER_ROLES",
    "WORKSPACE_READ_ROLES",
    "WORKSPACE_WRITE_ROLES",
    "ensure_project_access",
    "ensure_task_access",
    "ensure_workspace_access",
    "MailAddress",
    "MailDispatcher",
    "Mailer",
    "SmtpTransport",
]
