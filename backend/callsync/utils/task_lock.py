"""任务分布式锁

Beat 每分钟投递一次录音探测，上一轮还没跑完时新一轮应直接跳过。
锁基于 Redis SET NX EX，释放时用 Lua 脚本校验令牌，只删除自己持有的锁。
未配置 Redis 或 Redis 出错时不加锁，任务照常执行。
"""

import uuid

from loguru import logger

from callsync.utils.redis_client import get_redis_client

RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class TaskLock:
    """单个任务锁

    使用示例:
        lock = TaskLock("task_lock:callsync.retry_recordings", timeout=3600)
        if lock.acquire():
            try:
                ...
            finally:
                lock.release()
    """

    def __init__(self, key: str, timeout: int = 3600):
        self.key = key
        self.timeout = timeout
        self.token = uuid.uuid4().hex
        self.held = False

    def acquire(self) -> bool:
        """尝试获取锁

        Returns:
            bool: 是否可以执行（Redis 不可用时返回 True，但不持有锁）
        """
        client = get_redis_client()
        if client is None:
            logger.debug(f"Redis 未配置，不加锁: {self.key}")
            return True

        try:
            self.held = bool(client.set(self.key, self.token, nx=True, ex=self.timeout))
        except Exception as e:
            logger.warning(f"获取锁出错，不加锁执行: {self.key}, {e}")
            return True

        if not self.held:
            logger.debug(f"锁已被占用: {self.key}")
        return self.held

    def release(self) -> None:
        """释放锁（只释放自己持有的）"""
        if not self.held:
            return
        self.held = False

        client = get_redis_client()
        if client is None:
            return
        try:
            client.eval(RELEASE_SCRIPT, 1, self.key, self.token)
        except Exception as e:
            logger.warning(f"释放锁失败: {self.key}, {e}")
