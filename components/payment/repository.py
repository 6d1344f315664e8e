"""Repository for payment records."""

from datetime import date
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import extract, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.payment.models import Payment, PaymentRecordType


class PaymentRepository:
    """Repository for payment records."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, values: Dict[str, Any]) -> Payment:
        payment = Payment(**values)
        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def get_for_sale(self, sale_id: int) -> List[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.sale_id == sale_id).order_by(Payment.payment_date, Payment.id)
        )
        return list(result.scalars().all())

    async def reassign_sale(self, from_sale_ids: Sequence[int], to_sale_id: int) -> None:
        """Point payments of merged sales at the surviving sale."""
        if not from_sale_ids:
            return
        await self.session.execute(
            update(Payment).where(Payment.sale_id.in_(list(from_sale_ids))).values(sale_id=to_sale_id)
        )
        await self.session.commit()

    async def collected_by_month(self, year: int) -> Dict[int, Tuple[float, int]]:
        """Installment payments per month: (amount, count)."""
        month = extract("month", Payment.payment_date)
        result = await self.session.execute(
            select(month, func.sum(Payment.amount_paid), func.count(Payment.id))
            .where(
                Payment.payment_type == PaymentRecordType.INSTALLMENT.value,
                Payment.payment_date >= date(year, 1, 1),
                Payment.payment_date < date(year + 1, 1, 1),
            )
            .group_by(month)
        )
        return {int(row[0]): (float(row[1] or 0), int(row[2])) for row in result.all()}
