import asyncio

import pytest
import redis
from fastapi import HTTPException
from starlette.requests import Request

from app import rate_limiter


class FakeRedis:
    """INCR/TTL/EXPIRE over a dict, enough for the fixed-window counter"""

    def __init__(self):
        self.counts = {}
        self.ttls = {}

    def pipeline(self):
        return FakePipeline(self)

    def expire(self, key, seconds):
        self.ttls[key] = seconds


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))

    def ttl(self, key):
        self.ops.append(("ttl", key))

    def execute(self):
        results = []
        for op, key in self.ops:
            if op == "incr":
                self.store.counts[key] = self.store.counts.get(key, 0) + 1
                results.append(self.store.counts[key])
            else:
                results.append(self.store.ttls.get(key, -1))
        return results


def make_request(ip="203.0.113.9", forwarded=None):
    headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded else []
    return Request({"type": "http", "headers": headers, "client": (ip, 5000)})


def test_check_rate_limit_starts_window_on_first_hit():
    store = FakeRedis()

    assert rate_limiter.check_rate_limit("k", 2, 3600, store) == (True, 1, 3600)
    assert store.ttls["k"] == 3600
    assert rate_limiter.check_rate_limit("k", 2, 3600, store)[0] is True
    assert rate_limiter.check_rate_limit("k", 2, 3600, store)[0] is False


def test_client_ip_prefers_forwarded_header():
    assert rate_limiter.client_ip(make_request(forwarded="198.51.100.1, 10.0.0.1")) == "198.51.100.1"
    assert rate_limiter.client_ip(make_request()) == "203.0.113.9"


def test_limiter_answers_429_with_retry_after(monkeypatch):
    store = FakeRedis()
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: store)
    limit = rate_limiter.create_rate_limiter(limit=1, window_seconds=600, key_prefix="contact")

    asyncio.run(limit(make_request()))
    with pytest.raises(HTTPException) as exc:
        asyncio.run(limit(make_request()))

    assert exc.value.status_code == 429
    assert exc.value.headers == {"Retry-After": "600"}
    # Another address has its own window
    asyncio.run(limit(make_request(ip="203.0.113.10")))


def test_limiter_allows_requests_when_redis_is_down(monkeypatch):
    def unreachable():
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", unreachable)
    limit = rate_limiter.create_rate_limiter(limit=1)

    assert asyncio.run(limit(make_request())) is None
