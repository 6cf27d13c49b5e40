"""Alembic migration environment.

The DSN comes from application settings (DATABASE_URL / .env); the API's
asyncpg URL is converted to a sync URL since Alembic runs on psycopg2.
"""
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from tier_engine.core.config import get_settings
from tier_engine.models.tier_assignment import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", get_settings().sync_database_url)

target_metadata = Base.metadata


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


run_migrations_online()
