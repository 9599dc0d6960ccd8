"""
Database Infrastructure Package for the billing webhooks service

Exports database utilities, models, and repositories.
"""

from acolhe_billing.infrastructure.db.database import (
    DatabaseManager,
    build_database_url,
    get_db_manager,
    get_session,
)

from acolhe_billing.infrastructure.db.dependencies import (
    SessionDep,
    get_billing_repository,
    BillingRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "build_database_url",
    "get_db_manager",
    "get_session",
    # Dependencies
    "SessionDep",
    "get_billing_repository",
    "BillingRepoDep",
]
