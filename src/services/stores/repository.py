"""
Store lookups used by checkout.

Stores are owned by another part of the platform; checkout only reads them
by id or slug.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError
from src.core.logging import get_logger
from src.database.models.store import Store

logger = get_logger(__name__)


class StoreRepository:
    """Read-only store data access."""

    def __init__(self, session: AsyncSession):
        """
        Initialize store repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def get_by_id(self, store_id: uuid.UUID) -> Optional[Store]:
        result = await self.session.execute(select(Store).where(Store.id == store_id))
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Optional[Store]:
        result = await self.session.execute(
            select(Store).where(Store.slug == slug.strip().lower())
        )
        return result.scalar_one_or_none()

    async def resolve(
        self,
        store_id: Optional[uuid.UUID] = None,
        slug: Optional[str] = None,
    ) -> Optional[Store]:
        """
        Find the store a cart names, preferring the id over the slug.

        Returns:
            The store, or None when the cart names no store

        Raises:
            NotFoundError: If a store is named but does not exist
        """
        if store_id is not None:
            store = await self.get_by_id(store_id)
            if store is None:
                logger.warning("Store not found", store_id=str(store_id))
                raise NotFoundError("Store", store_id)
            return store

        if slug:
            store = await self.get_by_slug(slug)
            if store is None:
                logger.warning("Store not found", store_slug=slug)
                raise NotFoundError("Store", slug)
            return store

        return None
