from logging.config import fileConfig
import os
import re
import sys

from sqlalchemy import create_engine, pool
from alembic import context

# `alembic` may be run from inside HealthChat/; the repo root must be importable
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from HealthChat.database import DATABASE_URL, Base  # noqa: E402
import HealthChat.models  # noqa: E402,F401

config = context.config

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


# alembic.ini may hold a literal URL or a `${VAR}` placeholder; the app's DATABASE_URL is the fallback
def _migration_url() -> str:
    configured = (config.get_main_option("sqlalchemy.url") or "").strip()
    m = _PLACEHOLDER.fullmatch(configured)
    if m:
        configured = os.getenv(m.group(1)) or ""
        if configured.startswith("postgres://"):
            configured = configured.replace("postgres://", "postgresql+psycopg2://", 1)
    return configured or DATABASE_URL


if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_migration_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
