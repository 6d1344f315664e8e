"""Installment workflows: overdue stacking, recording payments, merging sales, reporting."""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from components.core.config import Settings, get_settings
from components.core.exceptions import EntityNotFoundError, MergeError, StaleDataError, ValidationError
from components.core.logging import get_logger
from components.core.retry import is_retryable, with_retry
from components.installment import calculations as calc
from components.installment import schemas
from components.installment.models import Installment, InstallmentStatus
from components.installment.repository import InstallmentRepository
from components.installment.stacking import StackingScheduler
from components.land.models import LandStatus
from components.land.repository import LandPieceRepository
from components.payment.models import PaymentRecordType
from components.payment.repository import PaymentRepository
from components.sale.calculations import is_listed_for_installments
from components.sale.models import Sale, SaleStatus
from components.sale.repository import SaleRepository

logger = get_logger(__name__)

MERGED_SUM_FIELDS = (
    "total_purchase_cost",
    "total_selling_price",
    "profit_margin",
    "small_advance_amount",
    "big_advance_amount",
)


@dataclass
class PaymentOutcome:
    sale_id: int
    allocation: calc.AllocationResult
    sale_status: SaleStatus


class InstallmentService:
    """Multi-step installment workflows over the repositories."""

    def __init__(
        self,
        installments: InstallmentRepository,
        payments: PaymentRepository,
        sales: SaleRepository,
        land_pieces: LandPieceRepository,
        scheduler: Optional[StackingScheduler] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.installments = installments
        self.payments = payments
        self.sales = sales
        self.land_pieces = land_pieces
        self.scheduler = scheduler
        self.settings = settings or get_settings()

    @classmethod
    def from_session(cls, session: AsyncSession, scheduler: Optional[StackingScheduler] = None,
                     settings: Optional[Settings] = None) -> "InstallmentService":
        return cls(
            InstallmentRepository(session),
            PaymentRepository(session),
            SaleRepository(session),
            LandPieceRepository(session),
            scheduler=scheduler,
            settings=settings,
        )

    @property
    def tolerance(self) -> float:
        return self.settings.AMOUNT_TOLERANCE

    def _notify(self) -> None:
        if self.scheduler is not None:
            self.scheduler.notify()

    async def _get_sale(self, sale_id: int) -> Sale:
        sale = await with_retry(lambda: self.sales.get_by_id(sale_id), label="load sale")
        if sale is None:
            raise EntityNotFoundError(f"Sale {sale_id} not found")
        return sale

    # Listing

    async def list_installments(
        self,
        status: str = "all",
        sale_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[Tuple[Installment, Sale]]:
        """Installments of confirmed sales, filtered the way the installments screen filters them."""
        pairs = await with_retry(lambda: self.installments.get_with_sales(sale_id), label="load installments")
        pairs = [(i, s) for i, s in pairs if is_listed_for_installments(s)]
        keep = {id(i) for i in calc.filter_by_status([i for i, _ in pairs], status, today, self.tolerance)}
        return [(i, s) for i, s in pairs if id(i) in keep]

    async def sale_installments(self, sale_id: int) -> Tuple[Sale, List[Installment], calc.SaleTotals]:
        sale = await self._get_sale(sale_id)
        rows = await with_retry(lambda: self.installments.get_for_sale(sale_id), label="load installments")
        return sale, rows, calc.sale_totals(rows, sale.big_advance_amount, self.tolerance)

    async def suggested_payment(self, installment_id: int,
                                today: Optional[date] = None) -> Tuple[Installment, calc.SuggestedPayment]:
        installment = await self.installments.get_by_id(installment_id)
        if installment is None:
            raise EntityNotFoundError(f"Installment {installment_id} not found")
        sale = await self._get_sale(installment.sale_id)
        rows = await self.installments.get_for_sale(sale.id)
        return installment, calc.suggest_payment(rows, sale.payment_type, today, self.tolerance)

    # Stacking

    async def stack_overdue(self, today: Optional[date] = None) -> int:
        """Fold overdue remainders onto the next payable installment; returns rows written."""
        rows = await with_retry(self.installments.get_active, label="load installments for stacking")
        updates = calc.plan_stacking(rows, today, self.tolerance)
        for update in updates:
            await self.installments.update(update.installment_id, update.values)
        if updates:
            logger.info("Stacked overdue amounts: %d installment rows updated", len(updates))
        return len(updates)

    # Payments

    async def record_payment(
        self,
        installment_id: int,
        amount: float,
        months: Optional[int] = None,
        recorded_by: Optional[int] = None,
        today: Optional[date] = None,
        payment_method: str = "Cash",
    ) -> PaymentOutcome:
        """
        Record money received for a sale, starting from its oldest unpaid installment.

        The clicked installment is re-read first so a payment made from a stale
        screen is refused instead of being applied twice.
        """
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        today = today or date.today()

        installment = await with_retry(lambda: self.installments.get_by_id(installment_id),
                                       label="re-read installment")
        if installment is None:
            raise EntityNotFoundError(f"Installment {installment_id} not found")
        if installment.status == InstallmentStatus.PAID or calc.is_settled(installment, self.tolerance):
            raise StaleDataError(
                f"Installment {installment.installment_number} is already paid. Refresh and try again."
            )

        sale = await self._get_sale(installment.sale_id)
        if sale.client_id is None:
            raise ValidationError(f"Sale {sale.id} has no client; cannot record a payment")

        rows = await with_retry(lambda: self.installments.get_for_sale(sale.id), label="load installments")
        unpaid = calc.unpaid_installments(rows, self.tolerance)
        if months:
            unpaid = unpaid[:months]
        if not unpaid:
            raise StaleDataError(f"Sale {sale.id} has no unpaid installments. Refresh and try again.")

        result = calc.allocate_payment(amount, unpaid, today, self.tolerance)
        for allocation in result.allocations:
            values = {"amount_paid": allocation.new_amount_paid, "status": allocation.status}
            if allocation.paid_date is not None:
                values["paid_date"] = allocation.paid_date
            await self.installments.update(allocation.installment.id, values)
            await self.payments.create({
                "client_id": sale.client_id,
                "sale_id": sale.id,
                "installment_id": allocation.installment.id,
                "amount_paid": allocation.amount,
                "payment_type": PaymentRecordType.INSTALLMENT.value,
                "payment_date": today,
                "payment_method": payment_method,
                "recorded_by": recorded_by,
            })

        if result.leftover > self.tolerance:
            logger.warning("Overpayment of %.2f on sale %d was not allocated to any installment",
                           result.leftover, sale.id,
                           extra={"sale_id": sale.id, "client_id": sale.client_id})
        logger.info("Recorded payment of %.2f on sale %d over %d installments",
                    result.allocated, sale.id, len(result.allocations),
                    extra={"sale_id": sale.id, "installment_id": installment.id, "user_id": recorded_by})

        status = await self.recalculate_sale_status(sale.id)
        self._notify()
        return PaymentOutcome(sale_id=sale.id, allocation=result, sale_status=status)

    async def recalculate_sale_status(self, sale_id: int) -> SaleStatus:
        rows = await self.installments.get_for_sale(sale_id)
        status = calc.sale_status_after_payment(rows, self.tolerance)
        await self.sales.update(sale_id, {"status": status.value})
        return status

    # Merging

    async def _schedules(self, sales: Sequence[Sale]) -> List[calc.SaleSchedule]:
        rows = await with_retry(lambda: self.installments.get_for_sales([s.id for s in sales]),
                                label="load installments")
        by_sale: Dict[int, List[Installment]] = {s.id: [] for s in sales}
        for row in rows:
            by_sale.setdefault(row.sale_id, []).append(row)
        return [calc.SaleSchedule(s.id, s.client_id, by_sale[s.id]) for s in sales]

    async def find_mergeable(self) -> List[List[calc.SaleSchedule]]:
        sales = await with_retry(self.sales.get_installment_sales, label="load installment sales")
        schedules = await self._schedules(sales)
        return calc.find_mergeable_groups(schedules, self.settings.MERGE_TOTAL_TOLERANCE)

    async def _delete_installments(self, sale_ids: Sequence[int]) -> None:
        """Delete every installment of ``sale_ids`` and check that none is left."""
        attempts = self.settings.MERGE_DELETE_ATTEMPTS
        remaining: List[int] = []
        for attempt in range(1, attempts + 1):
            try:
                if remaining:
                    await self.installments.delete_by_ids(remaining)
                else:
                    await self.installments.delete_for_sales(sale_ids)
                remaining = await self.installments.list_ids_for_sales(sale_ids)
            except Exception as e:
                if not is_retryable(e):
                    raise
                logger.warning("Installment delete attempt %d/%d failed: %s", attempt, attempts, e)
            else:
                if not remaining:
                    return
                logger.warning("Installment delete attempt %d/%d left %d rows", attempt, attempts, len(remaining))
            if attempt < attempts:
                await asyncio.sleep(self.settings.MERGE_RETRY_DELAY_SECONDS * attempt)

        ids = ", ".join(str(i) for i in sale_ids)
        raise MergeError(
            f"Could not delete the installments of sales {ids} after {attempts} attempts. "
            f"The merge was aborted and the sales may be partially migrated. Run "
            f"'DELETE FROM installments WHERE sale_id IN ({ids});' manually, then retry the merge."
        )

    async def merge_sales(self, sale_ids: Sequence[int]) -> Sale:
        """
        Merge a client's sales into the first one given.

        The surviving sale gets one combined schedule carrying everything the
        group still owes; the other sales are deleted and their payments moved
        to the survivor.
        """
        ordered = list(dict.fromkeys(sale_ids))
        if len(ordered) < 2:
            raise MergeError("At least two sales are needed for a merge")

        found = {s.id: s for s in await with_retry(lambda: self.sales.get_many(ordered), label="load sales")}
        missing = [i for i in ordered if i not in found]
        if missing:
            raise EntityNotFoundError(f"Sales not found: {', '.join(str(i) for i in missing)}")
        sales = [found[i] for i in ordered]

        schedules = await self._schedules(sales)
        calc.validate_merge_group(schedules, self.settings.MERGE_TOTAL_TOLERANCE)

        target, absorbed = sales[0], sales[1:]
        new_rows = calc.build_merged_schedule(schedules, target.id)
        outstanding = sum(s.remaining_total for s in schedules)
        logger.info("Merging sales %s into sale %d (outstanding %.2f)", ordered[1:], target.id, outstanding)

        await self._delete_installments(ordered)
        await self.installments.create_many(new_rows)

        piece_ids = list(dict.fromkeys(p for s in sales for p in (s.land_piece_ids or [])))
        values = {
            field: calc.round_money(sum(calc.money(getattr(s, field)) for s in sales))
            for field in MERGED_SUM_FIELDS
        }
        fees = [s.company_fee_amount for s in sales if s.company_fee_amount is not None]
        if fees:
            values["company_fee_amount"] = calc.round_money(sum(calc.money(f) for f in fees))
        values.update({
            "land_piece_ids": piece_ids,
            "number_of_installments": len(new_rows),
            "monthly_installment_amount": new_rows[0]["amount_due"],
            "installment_start_date": new_rows[0]["due_date"],
            "installment_end_date": new_rows[-1]["due_date"],
            "status": (SaleStatus.COMPLETED if all(r["status"] == InstallmentStatus.PAID for r in new_rows)
                       else SaleStatus.INSTALLMENTS_ONGOING).value,
        })
        await self.sales.update(target.id, values)

        absorbed_ids = [s.id for s in absorbed]
        await self.payments.reassign_sale(absorbed_ids, target.id)
        for sale_id in absorbed_ids:
            await self.sales.delete(sale_id)
        await self.land_pieces.set_status(piece_ids, LandStatus.SOLD.value)

        logger.info("Merged sales %s into sale %d: %d installments", absorbed_ids, target.id, len(new_rows),
                    extra={"sale_id": target.id, "client_id": target.client_id})
        self._notify()
        return await self._get_sale(target.id)

    # Reporting

    async def year_summary(self, year: int) -> schemas.YearSummary:
        """Scheduled against collected installment money, month by month."""
        scheduled = await with_retry(lambda: self.installments.scheduled_by_month(year), label="load schedule")
        collected = await with_retry(lambda: self.payments.collected_by_month(year), label="load payments")

        total_scheduled = sum(scheduled.values())
        total_collected = sum(amount for amount, _ in collected.values())
        total_count = sum(count for _, count in collected.values())

        months = []
        for month in range(1, 13):
            month_scheduled = scheduled.get(month, 0.0)
            month_collected, month_count = collected.get(month, (0.0, 0))
            months.append(schemas.MonthCollection(
                month=month,
                year=year,
                scheduled_amount=calc.round_money(month_scheduled),
                collected_amount=calc.round_money(month_collected),
                collection_percentage=(
                    round(month_collected / month_scheduled * 100, 2) if month_scheduled > 0 else 0
                ),
                num_payments=month_count,
                collected_percentage_of_year=(
                    round(month_collected / total_collected * 100, 2) if total_collected > 0 else 0
                ),
            ))

        return schemas.YearSummary(
            year=year,
            total_scheduled_amount=calc.round_money(total_scheduled),
            total_collected_amount=calc.round_money(total_collected),
            overall_collection_percentage=(
                round(total_collected / total_scheduled * 100, 2) if total_scheduled > 0 else 0
            ),
            total_num_payments=total_count,
            monthly_summaries=months,
        )
