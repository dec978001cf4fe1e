from __future__ import annotations
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Profile


async def get_by_email(db: AsyncSession, email: str) -> Optional[Profile]:
    res = await db.execute(select(Profile).where(Profile.email == email))
    return res.scalar_one_or_none()


async def get_by_mobile(db: AsyncSession, phone: str) -> Optional[Profile]:
    res = await db.execute(select(Profile).where(Profile.mobile_number == phone))
    return res.scalar_one_or_none()


async def create(db: AsyncSession, *, email: str, mobile_number: Optional[str] = None) -> Profile:
    profile = Profile(email=email, mobile_number=mobile_number)
    db.add(profile)
    await db.flush()
    return profile


async def set_otp_enabled(
    db: AsyncSession, profile_id: uuid.UUID, *, enabled: bool, phone: Optional[str] = None
) -> int:
    values: dict = {"otp_enabled": enabled}
    if phone is not None:
        values["mobile_number"] = phone
    res = await db.execute(update(Profile).where(Profile.id == profile_id).values(**values))
    return res.rowcount or 0


async def set_password_hash(db: AsyncSession, profile_id: uuid.UUID, password_hash: str) -> int:
    res = await db.execute(
        update(Profile).where(Profile.id == profile_id).values(password_hash=password_hash)
    )
    return res.rowcount or 0


class SqlProfileStore:
    """Profile store bound to one request's session; every write commits."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_mobile(self, phone: str) -> Optional[Profile]:
        return await get_by_mobile(self._db, phone)

    async def enable_otp(self, user_id: str, phone: str) -> int:
        # a malformed id raises ValueError, reported as a storage failure
        updated = await set_otp_enabled(self._db, uuid.UUID(user_id), enabled=True, phone=phone)
        await self._db.commit()
        return updated

    async def disable_otp(self, user_id: str) -> int:
        updated = await set_otp_enabled(self._db, uuid.UUID(user_id), enabled=False)
        await self._db.commit()
        return updated
