"""过期凭据清理进程。

过期的验证码与刷新令牌记录在查询时已被排除，本进程只负责定期回收存储：
每轮删除 `expires_at <= now` 的记录，空闲时按配置间隔休眠。
"""

import logging
import time

from hazel_api.core.config import get_settings
from hazel_api.db.session import SessionLocal
from hazel_api.logging_setup import setup_logging
from hazel_api.services.credential_store import purge_expired_tokens

logger = logging.getLogger("hazel_api.sweeper")


def run_once() -> int:
    """执行一轮清理，返回删除条数。"""
    with SessionLocal() as db:
        return purge_expired_tokens(db)


def main() -> None:
    """清理进程主循环。"""
    setup_logging()
    settings = get_settings()
    logger.info("credential sweeper started interval=%.1fs", settings.sweeper_interval_seconds)

    while True:
        try:
            run_once()
        except KeyboardInterrupt:
            logger.info("credential sweeper stopped")
            return
        except Exception:
            # 单轮失败不退出，下一轮重试。
            logger.exception("credential sweep failed")
        try:
            time.sleep(settings.sweeper_interval_seconds)
        except KeyboardInterrupt:
            logger.info("credential sweeper stopped")
            return


if __name__ == "__main__":
    main()
