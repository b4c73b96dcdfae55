"""
Alembic env.py — resolves the PostgreSQL URL through civicdesk Settings.

Credentials come from the same place the API gets them:
  1. LOCAL_DB_* variables  (when ENVIRONMENT=development)
  2. DB_HOST + DB_PASSWORD env vars
  3. AWS Secrets Manager at /civicdesk/db/credentials (staging / production)

ALEMBIC_DATABASE_URL overrides all of the above (CI, one-off maintenance).

Usage:
  ENVIRONMENT=development alembic upgrade head
  ENVIRONMENT=production alembic upgrade head
  alembic upgrade head --sql > schema.sql      # offline, no connection
"""
import logging
import logging.config
import os
import sys
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

_repo_root = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=_repo_root / ".env", override=False)

from civicdesk.core.config import get_settings  # noqa: E402  (alembic.ini prepends backend/ to sys.path)

logger = logging.getLogger("alembic.env")

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)


def _database_url() -> str:
    override = os.environ.get("ALEMBIC_DATABASE_URL")
    if override:
        return override
    try:
        return get_settings().database_url_sync
    except RuntimeError as exc:
        logger.error("Cannot resolve migration database URL: %s", exc)
        sys.exit(1)


config.set_main_option("sqlalchemy.url", _database_url().replace("%", "%%"))

# Schema is written as raw SQL in versions/; the ORM models are not consulted.
target_metadata = None


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            transaction_per_migration=True,
        )
        with context.begin_transaction():
            context.run_migrations()
    logger.info("Migrations applied (environment=%s)", get_settings().environment)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
