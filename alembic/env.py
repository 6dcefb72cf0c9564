from logging.config import fileConfig
import sys, pathlib
# add repo root to sys.path so `import dpwh_estimator` works when alembic runs in CI
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from alembic import context

from dpwh_estimator.db.session import engine
from dpwh_estimator.models.base import Base
import dpwh_estimator.models.tables  # noqa: F401  registers tables on Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=str(engine.url),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
