# backend/dvirdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- The package exposes a clear surface.

The actual model classes are kept in dvirdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users / roles
from .apps.fleet import models as fleet_models                # vehicles
from .apps.defects import models as defects_models            # defect ledger
from .apps.inspections import models as inspections_models    # DVIRs + links
from .apps.audit import models as audit_models                # audit trail

__all__ = [
    "accounts_models",
    "fleet_models",
    "defects_models",
    "inspections_models",
    "audit_models",
]
