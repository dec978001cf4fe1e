from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, assert_never

from ..domain.schemas.actions import (
    ActionOut,
    ActionRequest,
    DisableOtp,
    EnableOtp,
    ResetPassword,
    SendOtp,
    VerifyOtp,
    is_valid_phone,
)
from ..errors import InvalidInput, InvalidOrExpired, NotFound, UpstreamError
from ..observability.metrics import OTP_SENT, OTP_SMS_FAILED, OTP_VERIFY, PASSWORD_RESET

logger = logging.getLogger(__name__)

DEFAULT_OTP_TTL = timedelta(minutes=5)


# ---------- ports ----------
class ProfileRecord(Protocol):
    id: object
    email: str


class OtpStore(Protocol):
    async def upsert(self, phone: str, code: str, expires_at: datetime) -> None: ...

    async def consume(self, phone: str, code: str, now: datetime) -> bool: ...


class ProfileStore(Protocol):
    async def find_by_mobile(self, phone: str) -> Optional[ProfileRecord]: ...

    async def enable_otp(self, user_id: str, phone: str) -> int: ...

    async def disable_otp(self, user_id: str) -> int: ...


class IdentityPort(Protocol):
    async def generate_recovery_token(self, email: str) -> str: ...

    async def update_password(self, token: str, password: str) -> None: ...


class SmsSender(Protocol):
    async def send_otp(self, phone: str, code: str) -> bool: ...


# ---------- helpers ----------
def generate_code() -> str:
    # 100000..999999 inclusive, so never a leading zero
    return str(100000 + secrets.randbelow(900000))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- service ----------
class PhoneAuthService:
    """Issues, verifies and consumes phone OTPs and toggles a profile's OTP flag.

    All collaborators are passed in; the service holds no connections or settings
    of its own. Every public method either returns an ActionOut or raises a
    PhoneAuthError subclass carrying the HTTP status and the public message.
    """

    def __init__(
        self,
        *,
        otps: OtpStore,
        profiles: ProfileStore,
        identity: IdentityPort,
        sms: SmsSender,
        otp_ttl: timedelta = DEFAULT_OTP_TTL,
        now: Callable[[], datetime] = _utcnow,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._otps = otps
        self._profiles = profiles
        self._identity = identity
        self._sms = sms
        self._otp_ttl = otp_ttl
        self._now = now
        self._code_factory = code_factory

    async def handle(self, request: ActionRequest) -> ActionOut:
        match request:
            case SendOtp(phone=phone):
                return await self.send_otp(phone)
            case VerifyOtp(phone=phone, otp=otp):
                return await self.verify_otp(phone, otp)
            case ResetPassword(token=token, password=password):
                return await self.reset_password(token, password)
            case EnableOtp(user_id=user_id, phone=phone):
                return await self.enable_otp(user_id, phone)
            case DisableOtp(user_id=user_id):
                return await self.disable_otp(user_id)
            case _:
                assert_never(request)

    async def send_otp(self, phone: str) -> ActionOut:
        if not phone or not is_valid_phone(phone):
            raise InvalidInput("Invalid phone number")

        try:
            profile = await self._profiles.find_by_mobile(phone)
        except Exception as e:
            logger.exception("Error finding user by phone: %s", e)
            raise UpstreamError("Failed to create OTP") from e
        if profile is None:
            raise NotFound("No account found with this phone number")

        code = self._code_factory()
        expires_at = self._now() + self._otp_ttl
        try:
            await self._otps.upsert(phone, code, expires_at)
        except Exception as e:
            logger.exception("Error storing OTP: %s", e)
            raise UpstreamError("Failed to create OTP") from e

        # best-effort: a failed dispatch is logged but the caller still sees success
        try:
            delivered = await self._sms.send_otp(phone, code)
        except Exception as e:
            logger.exception("Error sending OTP SMS: %s", e)
            delivered = False
        if not delivered:
            OTP_SMS_FAILED.inc()
            logger.warning("OTP SMS dispatch failed", extra={"phone": phone})
        OTP_SENT.inc()
        return ActionOut(message="OTP sent successfully")

    async def verify_otp(self, phone: str, otp: str) -> ActionOut:
        if not phone or not otp:
            raise InvalidInput("Phone number and OTP required")

        try:
            consumed = await self._otps.consume(phone, otp, self._now())
        except Exception as e:
            logger.exception("Error verifying OTP: %s", e)
            consumed = False
        if not consumed:
            OTP_VERIFY.labels(result="invalid").inc()
            raise InvalidOrExpired("Invalid or expired OTP")

        try:
            profile = await self._profiles.find_by_mobile(phone)
        except Exception as e:
            logger.exception("Error finding user by phone: %s", e)
            raise UpstreamError("Failed to generate reset token") from e
        if profile is None:
            OTP_VERIFY.labels(result="no_account").inc()
            raise NotFound("User not found")

        try:
            token = await self._identity.generate_recovery_token(profile.email)
        except Exception as e:
            logger.exception("Error generating recovery token: %s", e)
            raise UpstreamError("Failed to generate reset token") from e

        OTP_VERIFY.labels(result="ok").inc()
        return ActionOut(message="OTP verified successfully", token=token)

    async def reset_password(self, token: str, password: str) -> ActionOut:
        if not token or not password:
            raise InvalidInput("Token and password required")

        try:
            await self._identity.update_password(token, password)
        except Exception as e:
            logger.warning("Password reset rejected: %s", e)
            PASSWORD_RESET.labels(result="rejected").inc()
            raise UpstreamError("Failed to reset password") from e

        PASSWORD_RESET.labels(result="ok").inc()
        return ActionOut(message="Password reset successfully")

    async def enable_otp(self, user_id: str, phone: str) -> ActionOut:
        if not user_id or not phone:
            raise InvalidInput("User ID and phone number required")
        if not is_valid_phone(phone):
            raise InvalidInput("Invalid phone number format")

        try:
            updated = await self._profiles.enable_otp(user_id, phone)
        except Exception as e:
            logger.exception("Error enabling OTP: %s", e)
            raise UpstreamError("Failed to enable OTP") from e
        if not updated:
            logger.warning("enable_otp matched no profile", extra={"user_id": user_id})
        return ActionOut(message="OTP enabled successfully")

    async def disable_otp(self, user_id: str) -> ActionOut:
        if not user_id:
            raise InvalidInput("User ID required")

        try:
            updated = await self._profiles.disable_otp(user_id)
        except Exception as e:
            logger.exception("Error disabling OTP: %s", e)
            raise UpstreamError("Failed to disable OTP") from e
        if not updated:
            logger.warning("disable_otp matched no profile", extra={"user_id": user_id})
        return ActionOut(message="OTP disabled successfully")
