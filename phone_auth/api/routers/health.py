from fastapi import APIRouter
from ...db import db_health
from ...redis_client import redis_health

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
async def health():
    db_ok, redis_ok = await db_health(), await redis_health()
    status = "ok" if (db_ok and redis_ok) else "degraded"
    return {
        "status": status,
        "dependencies": {
            "postgres": db_ok,
            "redis": redis_ok,
        },
    }

@router.get("/readiness")
async def readiness():
    # redis backs the OTP rate limits, so both are required to take traffic
    db_ok, redis_ok = await db_health(), await redis_health()
    return {"ready": bool(db_ok and redis_ok), "postgres": db_ok, "redis": redis_ok}

@router.get("/liveness")
async def liveness():
    return {"alive": True}
