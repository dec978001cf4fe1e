import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

# settings are read at import time; prod refuses the built-in JWT secret
os.environ.setdefault("ENV", "test")

import pytest
from fastapi.testclient import TestClient

from phone_auth.api.routers.phone_auth import get_phone_auth_service
from phone_auth.main import app
from phone_auth.services.phone_auth import PhoneAuthService
from phone_auth.services.rate_limit import get_rate_limiter

PHONE = "+15551234567"
EMAIL = "owner@x.test"


# ---------- in-memory collaborators ----------
class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now += timedelta(**kw)


@dataclass
class OtpRow:
    otp_code: str
    expires_at: datetime


class FakeOtpStore:
    def __init__(self):
        self.rows: dict[str, OtpRow] = {}
        self.fail_upsert = False
        self.fail_consume = False

    async def upsert(self, phone, code, expires_at):
        if self.fail_upsert:
            raise RuntimeError("connection reset")
        self.rows[phone] = OtpRow(code, expires_at)

    async def consume(self, phone, code, now):
        if self.fail_consume:
            raise RuntimeError("connection reset")
        row = self.rows.get(phone)
        if row is None or row.otp_code != code or row.expires_at <= now:
            return False
        del self.rows[phone]
        return True


@dataclass
class ProfileRow:
    email: str
    mobile_number: Optional[str] = None
    otp_enabled: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeProfileStore:
    def __init__(self):
        self.rows: dict[uuid.UUID, ProfileRow] = {}
        self.writes: list[tuple] = []
        self.fail_writes = False

    def add(self, email: str, mobile_number: Optional[str] = None) -> ProfileRow:
        p = ProfileRow(email=email, mobile_number=mobile_number)
        self.rows[p.id] = p
        return p

    async def find_by_mobile(self, phone):
        return next((p for p in self.rows.values() if p.mobile_number == phone), None)

    async def enable_otp(self, user_id, phone):
        self.writes.append(("enable", user_id, phone))
        if self.fail_writes:
            raise RuntimeError("update failed")
        p = self.rows.get(uuid.UUID(user_id))
        if p is None:
            return 0
        p.mobile_number, p.otp_enabled = phone, True
        return 1

    async def disable_otp(self, user_id):
        self.writes.append(("disable", user_id))
        if self.fail_writes:
            raise RuntimeError("update failed")
        p = self.rows.get(uuid.UUID(user_id))
        if p is None:
            return 0
        p.otp_enabled = False
        return 1


class FakeIdentity:
    def __init__(self):
        self.issued: dict[str, str] = {}
        self.passwords: dict[str, str] = {}
        self.fail_generate = False

    async def generate_recovery_token(self, email):
        if self.fail_generate:
            raise RuntimeError("identity provider unavailable")
        token = f"rt-{uuid.uuid4().hex}"
        self.issued[token] = email
        return token

    async def update_password(self, token, password):
        email = self.issued.get(token)
        if email is None:
            raise ValueError("unknown token")
        self.passwords[email] = password


class FakeSms:
    def __init__(self, delivered: bool = True, error: Optional[Exception] = None):
        self.delivered = delivered
        self.error = error
        self.sent: list[tuple[str, str]] = []

    async def send_otp(self, phone, code):
        self.sent.append((phone, code))
        if self.error is not None:
            raise self.error
        return self.delivered


class NoopLimiter:
    async def limit_otp_request(self, ip):
        return None

    async def limit_otp_verify(self, ip):
        return None


# ---------- fixtures ----------
@pytest.fixture
def clock():
    return Clock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def otps():
    return FakeOtpStore()


@pytest.fixture
def profiles():
    return FakeProfileStore()


@pytest.fixture
def owner(profiles):
    return profiles.add(EMAIL, PHONE)


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def sms():
    return FakeSms()


@pytest.fixture
def service(otps, profiles, identity, sms, clock):
    return PhoneAuthService(otps=otps, profiles=profiles, identity=identity, sms=sms, now=clock)


@pytest.fixture
def limiter():
    return NoopLimiter()


@pytest.fixture
def client(service, limiter):
    app.dependency_overrides[get_phone_auth_service] = lambda: service
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
