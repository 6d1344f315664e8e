"""Repository for sale operations."""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.sale.models import PaymentType, Sale, SaleStatus


class SaleRepository:
    """Repository for sale operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, sale_id: int) -> Optional[Sale]:
        result = await self.session.execute(select(Sale).where(Sale.id == sale_id))
        return result.scalar_one_or_none()

    async def get_many(self, sale_ids: Sequence[int]) -> List[Sale]:
        if not sale_ids:
            return []
        result = await self.session.execute(select(Sale).where(Sale.id.in_(list(sale_ids))))
        return list(result.scalars().all())

    async def get_for_client(self, client_id: int) -> List[Sale]:
        result = await self.session.execute(
            select(Sale).where(Sale.client_id == client_id).order_by(Sale.sale_date, Sale.id)
        )
        return list(result.scalars().all())

    async def get_installment_sales(self) -> List[Sale]:
        """Installment sales that are still open."""
        result = await self.session.execute(
            select(Sale).where(
                Sale.payment_type == PaymentType.INSTALLMENT.value,
                Sale.status.not_in([SaleStatus.CANCELLED.value, SaleStatus.COMPLETED.value]),
            ).order_by(Sale.client_id, Sale.id)
        )
        return list(result.scalars().all())

    async def create(self, values: Dict[str, Any]) -> Sale:
        sale = Sale(**values)
        self.session.add(sale)
        await self.session.commit()
        await self.session.refresh(sale)
        return sale

    async def update(self, sale_id: int, values: Dict[str, Any]) -> Optional[Sale]:
        await self.session.execute(update(Sale).where(Sale.id == sale_id).values(**values))
        await self.session.commit()
        return await self.get_by_id(sale_id)

    async def delete(self, sale_id: int) -> None:
        await self.session.execute(delete(Sale).where(Sale.id == sale_id))
        await self.session.commit()
