from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from phone_auth.config import get_settings
from phone_auth.models import Base

target_metadata = Base.metadata

# Interpret the config file for Python logging.
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Alembic runs on the SYNC driver; Settings derives it from DATABASE_URL when unset
SYNC_DATABASE_URL = get_settings().SYNC_DATABASE_URL
if not SYNC_DATABASE_URL:
    raise RuntimeError("Set SYNC_DATABASE_URL or a postgresql+asyncpg DATABASE_URL for Alembic.")

config.set_main_option("sqlalchemy.url", SYNC_DATABASE_URL)


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
