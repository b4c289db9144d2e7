"""Redis token bucket guarding gateway order minting."""

from time import time

import redis

from artpay.common.logging import logger


class TokenBucketLimiter:
    """Capacity and refill rate both equal `limit_per_minute`.

    Redis outages fail open: checkout must not depend on the limiter.
    """

    def __init__(self, client: redis.Redis, limit_per_minute: int, prefix: str = "tokenbucket:create-order") -> None:
        self.client = client
        self.capacity = float(limit_per_minute)
        self.refill_per_sec = self.capacity / 60.0
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, limit_per_minute: int) -> "TokenBucketLimiter":
        return cls(redis.Redis.from_url(url, decode_responses=True), limit_per_minute)

    def allow(self, subject: str) -> bool:
        key = f"{self.prefix}:{subject}"
        now = time()
        try:
            values = self.client.hmget(key, "tokens", "updated_at")
            tokens = float(values[0]) if values[0] is not None else self.capacity
            updated_at = float(values[1]) if values[1] is not None else now
            elapsed = max(0.0, now - updated_at)
            tokens = min(self.capacity, tokens + elapsed * self.refill_per_sec)

            allowed = tokens >= 1.0
            if allowed:
                tokens -= 1.0
            self.client.hset(key, mapping={"tokens": tokens, "updated_at": now})
            self.client.expire(key, 120)
            return allowed
        except redis.RedisError as exc:
            logger.warning("rate_limiter_unavailable: %s", exc)
            return True
