"""日志初始化。"""

import logging

from hazel_api.core.config import get_settings


def setup_logging() -> None:
    """初始化日志输出格式与级别。"""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def redact_email(email: str) -> str:
    """脱敏邮箱地址，避免日志泄露完整个人信息。"""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"
