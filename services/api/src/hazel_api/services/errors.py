"""服务层异常定义。

每个异常类同时携带 HTTP 状态码与稳定错误码，由 `hazel_api.exceptions`
统一转换为标准错误响应。预期内的业务失败映射为 4xx；基础设施失败只以
`FailedOperationError` 形式对外暴露，内部细节仅写入服务端日志。
"""

from typing import Any


class ServiceError(Exception):
    """服务层异常基类。"""

    status_code: int = 400
    error_code: str = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class DuplicateUserError(ServiceError):
    """邮箱已被注册。"""

    status_code = 409
    error_code = "DUPLICATE_USER"


class NotFoundError(ServiceError):
    """目标实体不存在。"""

    status_code = 404
    error_code = "NOT_FOUND"


class InvalidCredentialsError(ServiceError):
    """邮箱或密码错误（不区分两者，避免账号枚举）。"""

    status_code = 401
    error_code = "INVALID_CREDENTIALS"


class UnverifiedUserError(ServiceError):
    """邮箱尚未完成验证。"""

    status_code = 403
    error_code = "UNVERIFIED_USER"


class InvalidTokenError(ServiceError):
    """令牌或验证码无效（签名错误、类型不符、过期、已撤销统一归为此类）。"""

    status_code = 401
    error_code = "INVALID_TOKEN"


class WeakPasswordError(ServiceError):
    """密码不满足长度策略。"""

    status_code = 422
    error_code = "WEAK_PASSWORD"


class AlreadyVerifiedError(ServiceError):
    """用户已完成验证，无需重新发送验证码。"""

    status_code = 422
    error_code = "ALREADY_VERIFIED"


class DuplicateEntryError(ServiceError):
    """唯一约束冲突（成员关系、任务指派等）。"""

    status_code = 409
    error_code = "DUPLICATE_ENTRY"


class ForbiddenError(ServiceError):
    """无权访问目标资源。"""

    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "forbidden", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class FailedOperationError(ServiceError):
    """基础设施失败，对外不暴露内部细节。"""

    status_code = 500
    error_code = "FAILED_OPERATION"

    def __init__(self, message: str = "failed to complete operation", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class SigningError(FailedOperationError):
    """签名密钥不可用或签名失败。"""
