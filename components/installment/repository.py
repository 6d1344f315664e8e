"""Repository for installment operations."""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, extract, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.installment.models import Installment
from components.sale.models import Sale, SaleStatus


class InstallmentRepository:
    """Repository for installment operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, installment_id: int) -> Optional[Installment]:
        result = await self.session.execute(
            select(Installment).where(Installment.id == installment_id)
        )
        return result.scalar_one_or_none()

    async def get_for_sale(self, sale_id: int) -> List[Installment]:
        """All installments of a sale in schedule order."""
        result = await self.session.execute(
            select(Installment)
            .where(Installment.sale_id == sale_id)
            .order_by(Installment.installment_number)
        )
        return list(result.scalars().all())

    async def get_for_sales(self, sale_ids: Sequence[int]) -> List[Installment]:
        if not sale_ids:
            return []
        result = await self.session.execute(
            select(Installment)
            .where(Installment.sale_id.in_(list(sale_ids)))
            .order_by(Installment.sale_id, Installment.installment_number)
        )
        return list(result.scalars().all())

    async def get_with_sales(self, sale_id: Optional[int] = None) -> List[Tuple[Installment, Sale]]:
        """Installments joined with their sale, skipping cancelled sales."""
        query = (
            select(Installment, Sale)
            .join(Sale, Installment.sale_id == Sale.id)
            .where(Sale.status != SaleStatus.CANCELLED.value)
            .order_by(Installment.due_date, Installment.sale_id, Installment.installment_number)
        )
        if sale_id is not None:
            query = query.where(Installment.sale_id == sale_id)
        result = await self.session.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def get_active(self) -> List[Installment]:
        """Installments of every sale that is not cancelled."""
        return [installment for installment, _ in await self.get_with_sales()]

    async def list_ids_for_sales(self, sale_ids: Sequence[int]) -> List[int]:
        if not sale_ids:
            return []
        result = await self.session.execute(
            select(Installment.id).where(Installment.sale_id.in_(list(sale_ids)))
        )
        return [row[0] for row in result.all()]

    async def update(self, installment_id: int, values: Dict[str, Any]) -> None:
        await self.session.execute(
            update(Installment).where(Installment.id == installment_id).values(**values)
        )
        await self.session.commit()

    async def create_many(self, rows: Sequence[Dict[str, Any]]) -> List[Installment]:
        installments = [Installment(**row) for row in rows]
        self.session.add_all(installments)
        await self.session.commit()
        return installments

    async def delete_for_sales(self, sale_ids: Sequence[int]) -> None:
        await self.session.execute(
            delete(Installment).where(Installment.sale_id.in_(list(sale_ids)))
        )
        await self.session.commit()

    async def delete_by_ids(self, installment_ids: Sequence[int]) -> None:
        await self.session.execute(
            delete(Installment).where(Installment.id.in_(list(installment_ids)))
        )
        await self.session.commit()

    async def scheduled_by_month(self, year: int) -> Dict[int, float]:
        """Sum of ``amount_due`` per month of the due date, for one year."""
        month = extract("month", Installment.due_date)
        result = await self.session.execute(
            select(month, func.sum(Installment.amount_due))
            .join(Sale, Installment.sale_id == Sale.id)
            .where(
                Installment.due_date >= date(year, 1, 1),
                Installment.due_date < date(year + 1, 1, 1),
                Sale.status != SaleStatus.CANCELLED.value,
            )
            .group_by(month)
        )
        return {int(row[0]): float(row[1] or 0) for row in result.all()}
