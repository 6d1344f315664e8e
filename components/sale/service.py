"""Sale confirmation, promise completion and piece cancellation."""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from components.core.config import Settings, get_settings
from components.core.exceptions import EntityNotFoundError, ValidationError
from components.core.logging import get_logger
from components.core.retry import with_retry
from components.installment.calculations import (
    SaleTotals,
    add_months,
    build_schedule,
    money,
    round_money,
    sale_totals,
)
from components.installment.models import Installment
from components.installment.repository import InstallmentRepository
from components.land.models import LandStatus
from components.land.repository import LandPieceRepository
from components.payment.models import Payment, PaymentRecordType
from components.payment.repository import PaymentRepository
from components.sale.calculations import (
    PieceValues,
    derive_display_status,
    piece_count,
    piece_values,
    reduced_sale_values,
    split_sale_values,
)
from components.sale.models import PaymentType, Sale, SaleStatus
from components.sale.repository import SaleRepository

logger = get_logger(__name__)

CONFIRM_FULL = "full"
CONFIRM_BIG_ADVANCE = "big_advance"
CONFIRM_PROMISE = "promise"
CONFIRMATION_KINDS = (CONFIRM_FULL, CONFIRM_BIG_ADVANCE, CONFIRM_PROMISE)


@dataclass
class SaleDetail:
    sale: Sale
    installments: List[Installment]
    payments: List[Payment]
    totals: SaleTotals
    display_status: SaleStatus


class SaleService:
    """Workflows that move a sale through confirmation, completion or cancellation."""

    def __init__(
        self,
        sales: SaleRepository,
        installments: InstallmentRepository,
        payments: PaymentRepository,
        land_pieces: LandPieceRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self.sales = sales
        self.installments = installments
        self.payments = payments
        self.land_pieces = land_pieces
        self.settings = settings or get_settings()

    @classmethod
    def from_session(cls, session: AsyncSession, settings: Optional[Settings] = None) -> "SaleService":
        return cls(
            SaleRepository(session),
            InstallmentRepository(session),
            PaymentRepository(session),
            LandPieceRepository(session),
            settings=settings,
        )

    async def get_sale(self, sale_id: int) -> Sale:
        sale = await with_retry(lambda: self.sales.get_by_id(sale_id), label="load sale")
        if sale is None:
            raise EntityNotFoundError(f"Sale {sale_id} not found")
        return sale

    async def detail(self, sale_id: int) -> SaleDetail:
        sale = await self.get_sale(sale_id)
        rows = await self.installments.get_for_sale(sale_id)
        payments = await self.payments.get_for_sale(sale_id)
        return SaleDetail(
            sale=sale,
            installments=rows,
            payments=payments,
            totals=sale_totals(rows, sale.big_advance_amount, self.settings.AMOUNT_TOLERANCE),
            display_status=derive_display_status(sale, rows, payments),
        )

    async def client_sales(self, client_id: int) -> List[SaleDetail]:
        sales = await with_retry(lambda: self.sales.get_for_client(client_id), label="load client sales")
        return [await self.detail(sale.id) for sale in sales]

    def _check_piece(self, sale: Sale, piece_id: int) -> None:
        if piece_id not in (sale.land_piece_ids or []):
            raise ValidationError(f"Land piece {piece_id} is not part of sale {sale.id}")

    async def piece_values(self, sale_id: int, piece_id: int,
                           fee_percentage: Optional[float] = None) -> PieceValues:
        sale = await self.get_sale(sale_id)
        self._check_piece(sale, piece_id)
        return piece_values(sale, fee_percentage)

    async def _detach_piece(self, sale: Sale, piece_id: int, status: SaleStatus, notes: str) -> Sale:
        """Give ``piece_id`` its own sale when ``sale`` covers several pieces."""
        if piece_count(sale) <= 1:
            return sale
        new_sale = await self.sales.create(split_sale_values(sale, piece_id, status.value, notes))
        await self.sales.update(sale.id, reduced_sale_values(sale, piece_id))
        logger.info("Split piece %d of sale %d into sale %d", piece_id, sale.id, new_sale.id)
        return new_sale

    async def confirm_piece(
        self,
        sale_id: int,
        piece_id: int,
        kind: str,
        received: float,
        months: Optional[int] = None,
        start_date: Optional[date] = None,
        fee_percentage: Optional[float] = None,
        promise_completion_date: Optional[date] = None,
        confirmed_by: Optional[int] = None,
        payment_method: str = "Cash",
        today: Optional[date] = None,
    ) -> Sale:
        """
        Confirm one piece of a sale.

        ``full`` settles the piece, ``big_advance`` takes the advance and (for
        installment sales) generates the monthly schedule, ``promise`` records
        the initial payment of a promise of sale. A piece of a multi-piece sale
        is first split off into its own sale.
        """
        today = today or date.today()
        tolerance = self.settings.AMOUNT_TOLERANCE
        if kind not in CONFIRMATION_KINDS:
            raise ValidationError(f"Unknown confirmation type '{kind}'")
        if received is None or received < 0:
            raise ValidationError("Received amount cannot be negative")

        sale = await self.get_sale(sale_id)
        if sale.status in (SaleStatus.CANCELLED, SaleStatus.COMPLETED):
            raise ValidationError(f"Sale {sale_id} is {sale.status} and cannot be confirmed")
        self._check_piece(sale, piece_id)
        values = piece_values(sale, fee_percentage)

        schedule_start = start_date or today
        if kind == CONFIRM_FULL:
            if received < values.remaining_for_full - tolerance:
                raise ValidationError(
                    f"Received {received:.2f} is less than the {values.remaining_for_full:.2f} "
                    f"required for a full payment"
                )
        elif kind == CONFIRM_BIG_ADVANCE and sale.payment_type == PaymentType.INSTALLMENT:
            if not months or months <= 0:
                raise ValidationError("Number of months must be greater than zero")
            remaining_after_advance = round_money(values.price - values.reservation - received)
            if remaining_after_advance <= 0:
                raise ValidationError("Nothing is left to pay in installments after this advance")
        elif kind == CONFIRM_PROMISE:
            if sale.payment_type != PaymentType.PROMISE_OF_SALE:
                raise ValidationError(f"Sale {sale_id} is not a promise of sale")
            if received <= 0:
                raise ValidationError("Initial payment must be greater than zero")

        target = await self._detach_piece(sale, piece_id, SaleStatus.PENDING, f"Split from sale #{sale.id}")
        if target.id == sale.id and kind == CONFIRM_BIG_ADVANCE and await self.installments.get_for_sale(sale.id):
            raise ValidationError(f"Sale {sale.id} already has installments")

        update = {
            "company_fee_percentage": values.fee_percentage,
            "company_fee_amount": values.company_fee,
            "confirmed_by": confirmed_by,
        }
        payment_type = PaymentRecordType.FULL
        piece_status = LandStatus.RESERVED

        if kind == CONFIRM_FULL:
            update["status"] = SaleStatus.COMPLETED.value
            piece_status = LandStatus.SOLD
        elif kind == CONFIRM_BIG_ADVANCE:
            update["big_advance_amount"] = round_money(received)
            update["status"] = SaleStatus.PENDING.value
            payment_type = PaymentRecordType.BIG_ADVANCE
            if sale.payment_type == PaymentType.INSTALLMENT:
                remaining_after_advance = round_money(values.price - values.reservation - received)
                monthly = round_money(remaining_after_advance / months)
                last = round_money(remaining_after_advance - monthly * (months - 1))
                await self.installments.create_many(
                    build_schedule(target.id, months, monthly, schedule_start, last_amount=last)
                )
                update.update({
                    "number_of_installments": months,
                    "monthly_installment_amount": monthly,
                    "installment_start_date": schedule_start,
                    "installment_end_date": add_months(schedule_start, months - 1),
                })
        else:
            update.update({
                "promise_initial_payment": round_money(received),
                "promise_completion_date": promise_completion_date,
                "status": SaleStatus.AWAITING_PAYMENT.value,
            })
            payment_type = PaymentRecordType.INITIAL_PAYMENT

        confirmed = await self.sales.update(target.id, update)
        await self.land_pieces.set_status([piece_id], piece_status.value)
        if received > 0:
            await self.payments.create({
                "client_id": sale.client_id,
                "sale_id": target.id,
                "amount_paid": round_money(received),
                "payment_type": payment_type.value,
                "payment_date": today,
                "payment_method": payment_method,
                "recorded_by": confirmed_by,
            })
        logger.info("Confirmed piece %d of sale %d (%s, %.2f received)", piece_id, target.id, kind, received,
                    extra={"sale_id": target.id, "client_id": sale.client_id, "user_id": confirmed_by})
        return confirmed

    async def complete_promise(self, sale_id: int, received: float, recorded_by: Optional[int] = None,
                               payment_method: str = "Cash", today: Optional[date] = None) -> Sale:
        """Final payment of a promise of sale."""
        sale = await self.get_sale(sale_id)
        if sale.payment_type != PaymentType.PROMISE_OF_SALE:
            raise ValidationError(f"Sale {sale_id} is not a promise of sale")
        if sale.promise_completed or sale.status == SaleStatus.COMPLETED:
            raise ValidationError(f"Promise of sale {sale_id} is already completed")
        if sale.status == SaleStatus.CANCELLED:
            raise ValidationError(f"Sale {sale_id} is cancelled")
        if received is None or received <= 0:
            raise ValidationError("Final payment must be greater than zero")

        completed = await self.sales.update(sale_id, {
            "promise_completed": True,
            "status": SaleStatus.COMPLETED.value,
        })
        await self.land_pieces.set_status(sale.land_piece_ids or [], LandStatus.SOLD.value)
        await self.payments.create({
            "client_id": sale.client_id,
            "sale_id": sale_id,
            "amount_paid": round_money(received),
            "payment_type": PaymentRecordType.FULL.value,
            "payment_date": today or date.today(),
            "payment_method": payment_method,
            "recorded_by": recorded_by,
        })
        logger.info("Completed promise of sale %d", sale_id)
        return completed

    async def cancel_piece(self, sale_id: int, piece_id: int, recorded_by: Optional[int] = None,
                           today: Optional[date] = None) -> Sale:
        """
        Cancel one piece of a sale and refund what was paid for it.

        A multi-piece sale refunds an equal share of its payments and keeps the
        other pieces.
        """
        sale = await self.get_sale(sale_id)
        if sale.status == SaleStatus.CANCELLED:
            raise ValidationError(f"Sale {sale_id} is already cancelled")
        self._check_piece(sale, piece_id)

        payments = await self.payments.get_for_sale(sale_id)
        paid = sum(money(p.amount_paid) for p in payments)
        refund = round_money(paid / piece_count(sale))

        if piece_count(sale) > 1:
            cancelled = await self._detach_piece(
                sale, piece_id, SaleStatus.CANCELLED, f"Cancelled piece from sale #{sale.id}"
            )
        else:
            cancelled = await self.sales.update(sale_id, {"status": SaleStatus.CANCELLED.value})

        if refund > self.settings.AMOUNT_TOLERANCE:
            await self.payments.create({
                "client_id": sale.client_id,
                "sale_id": cancelled.id,
                "amount_paid": -refund,
                "payment_type": PaymentRecordType.REFUND.value,
                "payment_date": today or date.today(),
                "notes": f"Refund for cancelled piece {piece_id}",
                "recorded_by": recorded_by,
            })
        await self.land_pieces.set_status([piece_id], LandStatus.AVAILABLE.value)
        logger.info("Cancelled piece %d of sale %d, refunded %.2f", piece_id, sale_id, refund,
                    extra={"sale_id": sale_id, "client_id": sale.client_id})
        return cancelled
