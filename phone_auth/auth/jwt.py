from __future__ import annotations
import time
import uuid
from datetime import timedelta
from typing import Any, Dict
import jwt  # PyJWT

from ..config import get_settings

S = get_settings()

ALGO = "HS256"
RECOVERY_PURPOSE = "recovery"


def _now() -> int:
    return int(time.time())


def create_jwt(payload: Dict[str, Any], expires_in: timedelta) -> str:
    iat = _now()
    exp = iat + int(expires_in.total_seconds())
    to_encode = {
        "iss": S.APP_NAME,
        "aud": S.APP_NAME,
        "iat": iat,
        "exp": exp,
        "jti": uuid.uuid4().hex,
        **payload,
    }
    return jwt.encode(to_encode, S.JWT_SECRET, algorithm=ALGO)


def verify_jwt(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        S.JWT_SECRET,
        algorithms=[ALGO],
        audience=S.APP_NAME,
        issuer=S.APP_NAME,
    )


def create_recovery_token(profile_id: uuid.UUID, email: str) -> str:
    return create_jwt(
        {"sub": str(profile_id), "email": email, "purpose": RECOVERY_PURPOSE},
        expires_in=timedelta(minutes=S.RECOVERY_TOKEN_EXPIRE_MINUTES),
    )


def verify_recovery_token(token: str) -> uuid.UUID:
    """Return the profile id a recovery token was issued for.

    Raises jwt.InvalidTokenError for bad signatures, expiry, or tokens minted for
    another purpose.
    """
    claims = verify_jwt(token)
    if claims.get("purpose") != RECOVERY_PURPOSE:
        raise jwt.InvalidTokenError("not a recovery token")
    try:
        return uuid.UUID(claims["sub"])
    except (KeyError, ValueError) as e:
        raise jwt.InvalidTokenError("recovery token has no valid subject") from e
