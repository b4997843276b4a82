"""Redis-backed leaky-bucket rate limiter for AI generation endpoints.

Every quiz generation, content summary or attempt feedback call costs one
token from the caller's bucket.  Buckets hold at most
``RATE_LIMIT_GENERATION_BURST`` tokens and refill at
``RATE_LIMIT_GENERATION_PER_HOUR / 3600`` tokens per second.  ``take_token``
reports how long an empty bucket needs for its next token; the
``require_generation_rate_limit`` dependency in ``studyhub.api.deps`` turns
that into ``RateLimited`` (429).
"""

import logging
import math
import time

import redis

from studyhub.config import settings

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None

# KEYS[1] bucket key; ARGV: capacity, refill per second, now, idle ttl.
# Returns {allowed (0/1), seconds until the next token (string)}.
_TAKE_TOKEN = """
local capacity = tonumber(ARGV[1])
local rate     = tonumber(ARGV[2])
local now      = tonumber(ARGV[3])

local state  = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1]) or capacity
local ts     = tonumber(state[2]) or now

tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)

local allowed = 0
local wait = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
else
    wait = (1 - tokens) / rate
end

redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
redis.call('EXPIRE', KEYS[1], ARGV[4])
return {allowed, tostring(wait)}
"""


def _client() -> redis.Redis:
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True, max_connections=10
        )
    return redis.Redis(connection_pool=_pool)


def take_token(bucket: str) -> int:
    """Spend one token from *bucket*; return 0 when allowed, else seconds to wait.

    Redis being unavailable lets the request through.
    """
    per_hour = settings.RATE_LIMIT_GENERATION_PER_HOUR
    capacity = settings.RATE_LIMIT_GENERATION_BURST
    if per_hour <= 0:
        return 0

    rate = per_hour / 3600.0
    idle_ttl = max(60, math.ceil(capacity / rate))
    try:
        allowed, wait = _client().eval(
            _TAKE_TOKEN, 1, bucket, capacity, rate, time.time(), idle_ttl
        )
    except redis.RedisError as exc:
        logger.warning("Rate limiter unavailable, allowing %s: %s", bucket, exc)
        return 0
    if int(allowed):
        return 0
    return max(1, math.ceil(float(wait)))

