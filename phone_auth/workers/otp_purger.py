from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone

from ..config import get_settings
from ..db import SessionLocal
from ..redis_client import redis
from ..repos.otps import purge_expired
from ..observability.logging import setup_logging
from ..observability.metrics import OTP_PURGED

S = get_settings()
log = logging.getLogger("worker.otp_purger")

def _lock_key() -> str: return "lock:otp_purger"

HEARTBEAT_KEY = "hb:otp_purger"

async def _acquire_lock() -> bool:
    # Only one instance performs the purge; others idle
    return await redis.set(_lock_key(), "1", ex=S.OTP_PURGE_LOCK_TTL_SEC, nx=True) is True

async def run_once() -> int:
    # Acquire short lock; if taken, just skip this tick
    if not await _acquire_lock():
        return 0
    async with SessionLocal() as db:
        purged = await purge_expired(db, now=datetime.now(timezone.utc))
        await db.commit()
    if purged:
        OTP_PURGED.inc(purged)
        log.info("purged %d expired OTP codes", purged)
    return purged

async def _heartbeat(interval_sec: int = 5, ttl_sec: int = 20):
    # ops check the key to see the purger is alive
    while True:
        try:
            await redis.set(HEARTBEAT_KEY, datetime.now(timezone.utc).isoformat(), ex=ttl_sec)
        except Exception as e:
            log.debug("heartbeat failed: %s", e)
        await asyncio.sleep(interval_sec)

async def run_forever():
    hb = asyncio.create_task(_heartbeat())
    try:
        while True:
            try:
                await run_once()
            except Exception as e:
                log.exception("otp_purger error: %s", e)
            await asyncio.sleep(S.OTP_PURGE_INTERVAL_SEC)
    finally:
        hb.cancel()

def main():
    setup_logging()
    asyncio.run(run_forever())

if __name__ == "__main__":
    main()
