from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import Index
from sqlalchemy.dialects import postgresql as pg
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# ---------- PROFILES ----------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(pg.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # CITEXT gives case-insensitive unique email
    email: Mapped[str] = mapped_column(pg.CITEXT, nullable=False, unique=True)
    # lookup-by-phone for send_otp/verify_otp, so at most one profile per number
    mobile_number: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True, unique=True)
    otp_enabled: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    password_hash: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()"), onupdate=sa.func.now()
    )


# ---------- PHONE OTPS ----------
class PhoneOtp(Base):
    __tablename__ = "phone_otps"

    phone_number: Mapped[str] = mapped_column(sa.Text, primary_key=True)
    otp_code: Mapped[str] = mapped_column(sa.Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(pg.TIMESTAMP(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")
    )

    __table_args__ = (
        Index("ix_phone_otps_expires_at", "expires_at"),
    )
