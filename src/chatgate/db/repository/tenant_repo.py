"""Tenant and API key repositories."""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.tenant import ApiKey, Tenant
from .base import BaseRepository


class TenantRepository:
    """Repository for Tenant rows; a tenant's own id is its scope."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, **values: Any) -> Tenant:
        tenant = Tenant(**values)
        self.session.add(tenant)
        await self.session.flush()
        return tenant

    async def get_active(self, tenant_id: str) -> Tenant | None:
        """Get a tenant unless suspended or deleted."""
        stmt = select(Tenant).where(Tenant.id == tenant_id, Tenant.status == "active")
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class ApiKeyRepository(BaseRepository[ApiKey]):
    """Repository for ApiKey model operations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(ApiKey, session)

    async def get_active_by_hash(self, key_hash: str) -> ApiKey | None:
        """Get an active key whose tenant is active.

        Runs before the tenant is known, so it is keyed by hash alone.

        Args:
            key_hash: SHA-256 hex digest of the presented key

        Returns:
            Matching key or None
        """
        stmt = (
            select(ApiKey)
            .join(Tenant, ApiKey.tenant_id == Tenant.id)
            .where(
                ApiKey.key_hash == key_hash,
                ApiKey.status == "active",
                Tenant.status == "active",
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def touch(self, key_id: str) -> None:
        """Record key usage."""
        await self.session.execute(
            update(ApiKey).where(ApiKey.id == key_id).values(last_used_at=utcnow())
        )
