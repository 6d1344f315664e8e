"""Repository for client operations."""

from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from components.client.models import Client


class ClientRepository:
    """Repository for client operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, values: Dict[str, Any]) -> Client:
        """Create a new client."""
        client = Client(**values)
        self.session.add(client)
        await self.session.commit()
        await self.session.refresh(client)
        return client

    async def get_by_id(self, client_id: int) -> Optional[Client]:
        result = await self.session.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def get_by_cin(self, cin: str) -> Optional[Client]:
        """Exact lookup by national id number."""
        result = await self.session.execute(select(Client).where(Client.cin == cin.strip()))
        return result.scalar_one_or_none()

    async def get_all(self, skip: int = 0, limit: int = 100, search: Optional[str] = None) -> List[Client]:
        """Get clients, optionally filtered by name, CIN or phone."""
        query = select(Client)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(
                Client.name.ilike(pattern),
                Client.cin.ilike(pattern),
                Client.phone.ilike(pattern),
            ))
        query = query.order_by(Client.name).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, client_id: int, values: Dict[str, Any]) -> Optional[Client]:
        client = await self.get_by_id(client_id)
        if not client:
            return None
        for key, value in values.items():
            setattr(client, key, value)
        await self.session.commit()
        await self.session.refresh(client)
        return client

    async def delete(self, client_id: int) -> bool:
        client = await self.get_by_id(client_id)
        if not client:
            return False
        await self.session.delete(client)
        await self.session.commit()
        return True
