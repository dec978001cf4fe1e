"""profiles + phone_otps

Revision ID: 0001_phone_auth_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg


# revision identifiers, used by Alembic.
revision = "0001_phone_auth_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable citext for case-insensitive email
    op.execute("CREATE EXTENSION IF NOT EXISTS citext")

    # profiles
    op.create_table(
        "profiles",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", pg.CITEXT(), nullable=False),
        sa.Column("mobile_number", sa.Text(), nullable=True),
        sa.Column("otp_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("created_at", pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_unique_constraint("uq_profiles_email", "profiles", ["email"])
    op.create_unique_constraint("uq_profiles_mobile_number", "profiles", ["mobile_number"])

    # phone_otps: one pending code per phone, replaced on every send
    op.create_table(
        "phone_otps",
        sa.Column("phone_number", sa.Text(), primary_key=True, nullable=False),
        sa.Column("otp_code", sa.Text(), nullable=False),
        sa.Column("expires_at", pg.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", pg.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_phone_otps_expires_at", "phone_otps", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_phone_otps_expires_at", table_name="phone_otps")
    op.drop_table("phone_otps")
    op.drop_constraint("uq_profiles_mobile_number", "profiles", type_="unique")
    op.drop_constraint("uq_profiles_email", "profiles", type_="unique")
    op.drop_table("profiles")
