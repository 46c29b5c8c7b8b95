"""Read access to customers, which are owned by the surrounding application."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docintel.database.models import Customer
from docintel.repositories.base_repository import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Customer lookups used by uploads and matching."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Customer)

    async def get_workspace_slug(self, customer_id: int) -> Optional[str]:
        customer = await self.get_by_id(customer_id)
        return customer.workspace_slug if customer else None
