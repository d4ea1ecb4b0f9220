# backend/dvirdb/alembic/env.py

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# ---------------------------------------------------------------------------
# PYTHONPATH SETUP
# ---------------------------------------------------------------------------
# __file__  = backend/dvirdb/alembic/env.py
# BASE_DIR  = backend/
# package   = dvirdb
# ---------------------------------------------------------------------------

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from dvirdb.database import Base, write_engine  # type: ignore  # noqa: E402

# Import model modules so all tables are registered on Base.metadata.
from dvirdb.apps.accounts import models as accounts_models  # noqa: F401, E402
from dvirdb.apps.fleet import models as fleet_models  # noqa: F401, E402
from dvirdb.apps.inspections import models as inspections_models  # noqa: F401, E402
from dvirdb.apps.defects import models as defects_models  # noqa: F401, E402
from dvirdb.apps.audit import models as audit_models  # noqa: F401, E402

target_metadata = Base.metadata


def _resolve_offline_url() -> str:
    """
    Offline mode needs a URL to render SQL.
    Prefer sqlalchemy.url from alembic.ini, then fall back to env vars.
    """
    url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if not url or url.startswith("driver://"):
        url = (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError(
            "No database URL found.\n"
            "Set sqlalchemy.url in alembic.ini OR set DATABASE_WRITE_URL / DATABASE_URL."
        )
    config.set_main_option("sqlalchemy.url", url)
    return url


def run_migrations_offline() -> None:
    """Render SQL without connecting to the database."""
    context.configure(
        url=_resolve_offline_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate through the application's write engine."""
    with write_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
