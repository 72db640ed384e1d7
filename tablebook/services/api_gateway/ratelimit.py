"""Redis token bucket guarding checkout creation."""

from time import time

import redis

from tablebook.common.logging import logger


class TokenBucket:
    """Per-key bucket (capacity = refill rate = limit per minute)."""

    def __init__(self, rdb, limit_per_minute: int) -> None:
        self.rdb = rdb
        self.limit_per_minute = limit_per_minute

    def allow(self, key: str) -> bool:
        if self.limit_per_minute <= 0:
            return True
        try:
            return self._take(f"tokenbucket:{key}")
        except redis.RedisError as exc:
            logger.warning("rate_limit_unavailable error=%s", exc)
            return True

    def _take(self, key: str) -> bool:
        now = time()
        capacity = float(self.limit_per_minute)
        refill_per_sec = capacity / 60.0

        values = self.rdb.hmget(key, "tokens", "updated_at")
        tokens = float(values[0]) if values[0] is not None else capacity
        updated_at = float(values[1]) if values[1] is not None else now
        elapsed = max(0.0, now - updated_at)
        tokens = min(capacity, tokens + elapsed * refill_per_sec)

        allowed = tokens >= 1.0
        if allowed:
            tokens -= 1.0
        self.rdb.hset(key, mapping={"tokens": tokens, "updated_at": now})
        self.rdb.expire(key, 120)
        return allowed
