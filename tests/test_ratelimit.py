"""Token bucket behaviour against an in-memory Redis stand-in."""

import redis

from tablebook.services.api_gateway.ratelimit import TokenBucket


class MemoryRedis:
    """Implements the hash commands the bucket uses."""

    def __init__(self):
        self.hashes = {}

    def hmget(self, key, *fields):
        data = self.hashes.get(key, {})
        return [data.get(field) for field in fields]

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    def expire(self, key, seconds):
        return True


class DownRedis:
    def hmget(self, key, *fields):
        raise redis.ConnectionError("redis unavailable")


def test_bucket_allows_up_to_limit():
    bucket = TokenBucket(MemoryRedis(), limit_per_minute=3)
    assert [bucket.allow("a@b.com") for _ in range(4)] == [True, True, True, False]
    assert bucket.allow("c@d.com")


def test_zero_limit_disables_bucket():
    bucket = TokenBucket(DownRedis(), limit_per_minute=0)
    assert bucket.allow("a@b.com")


def test_redis_outage_fails_open():
    bucket = TokenBucket(DownRedis(), limit_per_minute=3)
    assert bucket.allow("a@b.com")
