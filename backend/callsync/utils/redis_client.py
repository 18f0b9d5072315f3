"""Redis 客户端单例

只用于任务锁。连接失败后 30 秒内不再重试，避免每次抢锁都等待连接超时。
"""

import time

import redis
from loguru import logger

from callsync.config import settings

RETRY_AFTER_SECONDS = 30

_redis_client: redis.Redis | None = None
_failed_at: float | None = None


def get_redis_client() -> redis.Redis | None:
    """获取 Redis 客户端，未配置或暂时不可用时返回 None"""
    global _redis_client, _failed_at
    if _redis_client is not None or not settings.redis_url:
        return _redis_client
    if _failed_at is not None and time.monotonic() - _failed_at < RETRY_AFTER_SECONDS:
        return None

    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Redis 连接失败，{RETRY_AFTER_SECONDS}s 后重试: {e}")
        _failed_at = time.monotonic()
        return None

    logger.info("Redis 客户端连接成功")
    _redis_client = client
    _failed_at = None
    return _redis_client


def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
