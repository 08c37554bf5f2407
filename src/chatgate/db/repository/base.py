"""Base repository with tenant-scoped reads."""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Repository over one tenant-owned model.

    Reads go through `scoped`, which always filters on `tenant_id`; there is
    no lookup by primary key alone.

    Attributes:
        model: SQLAlchemy model class with `id` and `tenant_id` columns
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Database session
        """
        self.model = model
        self.session = session

    def scoped(self, tenant_id: str, *conditions: Any) -> Select:
        """Select rows owned by a tenant.

        Args:
            tenant_id: Owning tenant
            *conditions: Extra WHERE clauses

        Returns:
            Select statement filtered by tenant
        """
        return select(self.model).where(self.model.tenant_id == tenant_id, *conditions)  # type: ignore[attr-defined]

    async def create(self, **kwargs: Any) -> ModelType:
        """Insert a record and return it refreshed."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_for_tenant(self, tenant_id: str, id: Any) -> ModelType | None:
        """Get a tenant's record by id.

        Returns:
            Model instance, or None when absent or owned by another tenant
        """
        result = await self.session.execute(self.scoped(tenant_id, self.model.id == id))  # type: ignore[attr-defined]
        return result.scalar_one_or_none()

    async def is_claimed_elsewhere(self, tenant_id: str, id: Any) -> bool:
        """Check whether another tenant already owns this id.

        Answers yes or no only; the foreign row is never loaded.
        """
        stmt = select(
            exists().where(
                self.model.id == id,  # type: ignore[attr-defined]
                self.model.tenant_id != tenant_id,  # type: ignore[attr-defined]
            )
        )
        return bool(await self.session.scalar(stmt))
