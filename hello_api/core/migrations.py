"""Schema upgrades run on the application's own engine at startup.

Alembic shares the engine's connection (``config.attributes["connection"]``),
so the upgrade runs in the same transaction as the revision check and needs
no second engine or worker thread. The baseline revision creates the
``users`` table, or adopts one left behind by ``Base.metadata.create_all``.
"""

from pathlib import Path

import structlog
from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

import hello_api.core.database as db_module

logger = structlog.get_logger()

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def alembic_config(connection=None) -> Config:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def current_revision(connection) -> str | None:
    return MigrationContext.configure(connection).get_current_revision()


def _upgrade_to_head(connection) -> tuple[str | None, str | None]:
    before = current_revision(connection)
    command.upgrade(alembic_config(connection), "head")
    return before, current_revision(connection)


async def ensure_db_migrated() -> None:
    async with db_module.engine.begin() as conn:
        before, after = await conn.run_sync(_upgrade_to_head)

    if before == after:
        logger.info("db_schema_current", revision=after)
    else:
        logger.info("db_schema_upgraded", from_revision=before, to_revision=after)
