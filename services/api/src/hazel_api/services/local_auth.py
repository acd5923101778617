"""口令与一次性凭据的单向编码。"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

from hazel_api.core.config import get_settings

PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"
OTP_DIGITS = 6


def hash_password(password: str) -> str:
    """使用 PBKDF2-SHA256 生成口令哈希。

    每次调用使用新的随机盐，同一口令的两次哈希结果不同，
    校验时必须使用 `verify_password`，不能直接比较哈希串。
    """
    settings = get_settings()
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        settings.auth_password_hash_iterations,
    )
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"{PASSWORD_HASH_ALGORITHM}${settings.auth_password_hash_iterations}${salt_b64}${digest_b64}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """校验口令是否匹配，哈希格式异常时返回 False。"""
    if not password_hash:
        return False
    try:
        algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
        if algorithm != PASSWORD_HASH_ALGORITHM:
            return False
        iterations = int(iterations_text)
        if iterations <= 0:
            return False
        salt = base64.b64decode(salt_b64.encode("ascii"), validate=True)
        expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"), validate=True)
    except (ValueError, TypeError, binascii.Error):
        return False

    actual_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual_digest, expected_digest)


def hash_token(raw: str) -> str:
    """计算令牌摘要（十六进制 SHA-256），仅用作存储索引。"""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_otp() -> str:
    """生成 6 位数字验证码，取值均匀分布于 [0, 1_000_000)。"""
    return f"{secrets.randbelow(10**OTP_DIGITS):0{OTP_DIGITS}d}"
