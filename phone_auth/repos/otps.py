from __future__ import annotations
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import PhoneOtp


async def upsert_code(db: AsyncSession, *, phone: str, code: str, expires_at: datetime) -> None:
    """Store `code` for `phone`, replacing any pending code for that number."""
    stmt = pg_insert(PhoneOtp).values(phone_number=phone, otp_code=code, expires_at=expires_at)
    stmt = stmt.on_conflict_do_update(
        index_elements=[PhoneOtp.phone_number],
        set_={"otp_code": stmt.excluded.otp_code, "expires_at": stmt.excluded.expires_at},
    )
    await db.execute(stmt)


async def consume_code(db: AsyncSession, *, phone: str, code: str, now: datetime) -> bool:
    # one conditional DELETE: of two concurrent verifies only one gets the row back
    res = await db.execute(
        delete(PhoneOtp)
        .where(
            PhoneOtp.phone_number == phone,
            PhoneOtp.otp_code == code,
            PhoneOtp.expires_at > now,
        )
        .returning(PhoneOtp.phone_number)
    )
    return res.first() is not None


async def purge_expired(db: AsyncSession, *, now: datetime) -> int:
    res = await db.execute(delete(PhoneOtp).where(PhoneOtp.expires_at <= now))
    return res.rowcount or 0


class SqlOtpStore:
    """OTP store bound to one request's session; every write commits."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def upsert(self, phone: str, code: str, expires_at: datetime) -> None:
        await upsert_code(self._db, phone=phone, code=code, expires_at=expires_at)
        await self._db.commit()

    async def consume(self, phone: str, code: str, now: datetime) -> bool:
        consumed = await consume_code(self._db, phone=phone, code=code, now=now)
        await self._db.commit()
        return consumed
