from __future__ import annotations
import hashlib
import logging

import bcrypt
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from ..repos import profiles as profiles_repo
from .jwt import create_recovery_token, verify_recovery_token

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class IdentityError(Exception):
    """The identity admin refused the request (unknown account, bad token, weak password)."""


def hash_password(password: str) -> str:
    # SHA256 first so passwords longer than bcrypt's 72-byte limit still count in full
    sha = hashlib.sha256(password.encode("utf-8")).digest()
    return bcrypt.hashpw(sha, bcrypt.gensalt()).decode()


class IdentityAdmin:
    """Elevated-privilege account operations used by the phone-auth flow."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def generate_recovery_token(self, email: str) -> str:
        profile = await profiles_repo.get_by_email(self._db, email)
        if profile is None:
            raise IdentityError(f"no account for {email}")
        return create_recovery_token(profile.id, profile.email)

    async def update_password(self, token: str, password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise IdentityError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        try:
            profile_id = verify_recovery_token(token)
        except jwt.InvalidTokenError as e:
            raise IdentityError(f"invalid recovery token: {e}") from e

        updated = await profiles_repo.set_password_hash(self._db, profile_id, hash_password(password))
        if not updated:
            await self._db.rollback()
            raise IdentityError(f"account {profile_id} no longer exists")
        await self._db.commit()
        logger.info("password updated", extra={"profile_id": str(profile_id)})
