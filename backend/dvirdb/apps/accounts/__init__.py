# backend/dvirdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- The local mirror of identities provisioned by the identity service
- Role lookup for authorisation
- The capability policy injected into every mutating operation

Other apps (defects, inspections) should depend on this app for anything
related to "who is allowed to do what".
"""

from . import models, policy, services  # noqa: F401

__all__ = ["models", "policy", "services"]
