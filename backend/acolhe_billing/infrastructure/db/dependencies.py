"""
Dependency Injection Providers for the billing webhooks service

Provides FastAPI dependencies for database sessions and repositories.
Routes depend on the IBillingRepository abstraction, not the SQL implementation.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from acolhe_billing.domain.interfaces import IBillingRepository
from acolhe_billing.infrastructure.db.database import get_session
from acolhe_billing.infrastructure.db.repositories import BillingRepository


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_billing_repository(
    session: SessionDep,
) -> AsyncGenerator[IBillingRepository, None]:
    """
    Dependency provider for the billing repository.

    Usage:
        @router.post("/subscription-webhook")
        async def handle(repo: BillingRepoDep):
            ...
    """
    yield BillingRepository(session)


BillingRepoDep = Annotated[IBillingRepository, Depends(get_billing_repository)]
