"""Unit tests for the generation rate limiter (Redis replaced by stubs)."""

import pytest
import redis

from studyhub.api.deps import require_generation_rate_limit
from studyhub.config import settings
from studyhub.exceptions import RateLimited
from studyhub.services import rate_limiter


class _Bucket:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def eval(self, script, numkeys, *args):
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def bucket(monkeypatch):
    def _install(**kwargs):
        fake = _Bucket(**kwargs)
        monkeypatch.setattr(rate_limiter, "_client", lambda: fake)
        return fake

    return _install


def test_allowed_request(bucket):
    fake = bucket(reply=[1, "0"])
    assert rate_limiter.take_token("studyhub:gen:u1") == 0
    key, capacity, rate, _now, ttl = fake.calls[0]
    assert key == "studyhub:gen:u1"
    assert capacity == settings.RATE_LIMIT_GENERATION_BURST
    assert rate == pytest.approx(settings.RATE_LIMIT_GENERATION_PER_HOUR / 3600.0)
    assert ttl >= 60


def test_empty_bucket_reports_wait(bucket):
    bucket(reply=[0, "12.2"])
    assert rate_limiter.take_token("studyhub:gen:u1") == 13


def test_redis_down_allows(bucket):
    bucket(error=redis.ConnectionError("refused"))
    assert rate_limiter.take_token("studyhub:gen:u1") == 0


def test_disabled_when_rate_is_zero(bucket, monkeypatch):
    fake = bucket(reply=[0, "99"])
    monkeypatch.setattr(settings, "RATE_LIMIT_GENERATION_PER_HOUR", 0)
    assert rate_limiter.take_token("studyhub:gen:u1") == 0
    assert fake.calls == []


def test_dependency_raises_rate_limited(bucket, make_user):
    bucket(reply=[0, "30"])
    with pytest.raises(RateLimited) as exc:
        require_generation_rate_limit(make_user("busy"))
    assert exc.value.status_code == 429
    assert exc.value.details == {"retry_after_seconds": 30}
