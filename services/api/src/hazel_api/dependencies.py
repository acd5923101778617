"""请求上下文依赖。

职责:
1. 解析 Authorization 头并校验访问令牌（请求闸门）。
2. 将令牌主体暴露为路由可用的用户 ID。
3. 提供邮件协作方与口令策略的注入点，便于测试替换。

闸门只做签名与有效期校验，不查询数据库，也不校验资源级权限；
资源级权限由各路由调用 `hazel_api.services.authorization` 完成。
"""

from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hazel_api.core.config import get_settings
from hazel_api.core.security import TokenClaims, TokenKind, extract_bearer_token, validate_token
from hazel_api.services.identity import PasswordPolicy
from hazel_api.services.mailer import Mailer

bearer_scheme = HTTPBearer(auto_error=False, description="访问令牌（Bearer）。")


def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenClaims:
    """提取并校验当前请求的访问令牌。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    claims = validate_token(extract_bearer_token(authorization), TokenKind.ACCESS)
    request.state.user_id = claims.subject
    return claims


def get_current_user_id(principal: TokenClaims = Depends(get_current_principal)) -> UUID:
    """返回当前用户 ID，便于轻量依赖注入。"""
    return principal.subject


def get_mailer(request: Request) -> Mailer:
    """返回应用级邮件分发器。"""
    return request.app.state.mailer


def get_password_policy() -> PasswordPolicy:
    """按配置构造口令策略。"""
    settings = get_settings()
    return PasswordPolicy(
        min_length=settings.auth_password_min_length,
        max_length=settings.auth_password_max_length,
    )
