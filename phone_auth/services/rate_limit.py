from __future__ import annotations
from redis.asyncio import Redis

from ..config import Settings, get_settings
from ..errors import RateLimited
from ..redis_client import redis


class OtpRateLimiter:
    """Fixed-window per-IP counters for OTP issuance and verification."""

    def __init__(self, client: Redis, settings: Settings) -> None:
        self._redis = client
        self._enabled = settings.RATE_LIMIT_ENABLED
        self._req_limit = settings.RL_OTP_REQ_PER_IP_10S
        self._verify_limit = settings.RL_OTP_VERIFY_PER_IP_10S

    # ---- generic token counter (fixed window) ----
    async def _hit(self, key: str, window_sec: int, limit: int) -> None:
        if not self._enabled:
            return
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, window_sec)
        if count > limit:
            ttl = await self._redis.ttl(key)
            raise RateLimited(retry_after=ttl if ttl and ttl > 0 else window_sec)

    # ---- public helpers ----
    async def limit_otp_request(self, ip: str) -> None:
        await self._hit(f"rl:otp:req:ip:{ip}", window_sec=10, limit=self._req_limit)

    async def limit_otp_verify(self, ip: str) -> None:
        await self._hit(f"rl:otp:verify:ip:{ip}", window_sec=10, limit=self._verify_limit)


def get_rate_limiter() -> OtpRateLimiter:
    return OtpRateLimiter(redis, get_settings())
