# alembic/env.py

import sys
from os.path import abspath, dirname
# Добавляем путь к проекту, чтобы импорты app.* работали из CLI alembic
sys.path.insert(0, abspath(dirname(dirname(__file__))))

from logging.config import fileConfig
from sqlalchemy import engine_from_config
from sqlalchemy.pool import NullPool
from alembic import context

# URL базы берем из settings (.env), а не из alembic.ini
from app.core.config import settings
from app.db.session import Base
# Все таблицы леджера должны попасть в метаданные для autogenerate
from app.models import credit, redemption, order, subscription, commission  # noqa: F401

target_metadata = Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure_kwargs() -> dict:
    # compare_type: смена длины String-колонок (коды, номера заказов) тоже попадает в миграцию
    return {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    """Генерация SQL без подключения к базе (alembic upgrade --sql)."""
    context.configure(
        url=settings.DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        {"sqlalchemy.url": settings.DATABASE_URL},
        prefix="sqlalchemy.",
        poolclass=NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs())

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
