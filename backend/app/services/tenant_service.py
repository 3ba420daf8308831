"""
RentGate Backend - Tenant Service
==================================

What:  Tenant ownership lookups backing the impersonation endpoint.
Why:   A property owner may only view as tenants they manage.
How:   One indexed query; None becomes NotFoundError, driver failures become
       DatabaseError so the route layer deals only in application errors.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, NotFoundError
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)


class TenantService:
    """Stateless; receives the database session on every call."""

    async def get_owned_tenant(self, db: AsyncSession, tenant_id: str, owner_id: str) -> Tenant:
        """
        Fetch a tenant that belongs to `owner_id`.

        A tenant that exists but belongs to another owner is reported as not
        found, so owners cannot probe for other owners' tenant ids.

        Raises:
            NotFoundError: no such tenant for this owner (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            result = await db.execute(
                select(Tenant).where(Tenant.id == tenant_id, Tenant.owner_id == owner_id)
            )
            tenant = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching tenant %s: %s", tenant_id, str(e))
            raise DatabaseError(
                context={"tenant_id": tenant_id, "owner_id": owner_id, "error": str(e)}
            ) from e

        if tenant is None:
            raise NotFoundError(resource="tenant", resource_id=tenant_id)
        return tenant


# Module-level instance, like the other stateless services
tenant_service = TenantService()
