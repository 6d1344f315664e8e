"""Per-piece arithmetic and status rules for sales."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from components.installment.calculations import TOLERANCE, is_settled, money, round_money
from components.installment.models import InstallmentStatus
from components.payment.models import PaymentRecordType
from components.sale.models import PaymentType, SaleStatus

DEFAULT_COMPANY_FEE_PERCENTAGE = 2.0


@dataclass
class PieceValues:
    price: float
    cost: float
    profit: float
    reservation: float
    company_fee: float
    total_payable: float
    fee_percentage: float

    @property
    def remaining_for_full(self) -> float:
        """What a full payment must cover once the reservation deposit is deducted."""
        return round_money(self.total_payable - self.reservation)


def piece_count(sale) -> int:
    return max(1, len(sale.land_piece_ids or []))


def piece_values(sale, fee_percentage: Optional[float] = None) -> PieceValues:
    """Share of one piece in a (possibly multi-piece) sale."""
    count = piece_count(sale)
    if fee_percentage is None:
        fee_percentage = (money(sale.company_fee_percentage)
                          if sale.company_fee_percentage is not None else DEFAULT_COMPANY_FEE_PERCENTAGE)
    price = money(sale.total_selling_price) / count
    company_fee = price * fee_percentage / 100
    return PieceValues(
        price=round_money(price),
        cost=round_money(money(sale.total_purchase_cost) / count),
        profit=round_money(money(sale.profit_margin) / count),
        reservation=round_money(money(sale.small_advance_amount) / count),
        company_fee=round_money(company_fee),
        total_payable=round_money(price + company_fee),
        fee_percentage=fee_percentage,
    )


def reduced_sale_values(sale, piece_id: int) -> Dict[str, Any]:
    """Column updates for a sale that gives up one of its pieces."""
    count = piece_count(sale)
    share = piece_values(sale)
    remaining_pieces = [p for p in (sale.land_piece_ids or []) if p != piece_id]
    remaining_count = len(remaining_pieces)
    values: Dict[str, Any] = {
        "land_piece_ids": remaining_pieces,
        "total_selling_price": round_money(money(sale.total_selling_price) - share.price),
        "total_purchase_cost": round_money(money(sale.total_purchase_cost) - share.cost),
        "profit_margin": round_money(money(sale.profit_margin) - share.profit),
        "small_advance_amount": round_money(money(sale.small_advance_amount) - share.reservation),
        "big_advance_amount": round_money(money(sale.big_advance_amount) * remaining_count / count),
        "monthly_installment_amount": (
            round_money(money(sale.monthly_installment_amount) * remaining_count / count)
            if sale.monthly_installment_amount else None
        ),
    }
    return values


def split_sale_values(sale, piece_id: int, status: str, notes: str) -> Dict[str, Any]:
    """Column values for a new single-piece sale carved out of ``sale``."""
    share = piece_values(sale)
    return {
        "client_id": sale.client_id,
        "land_piece_ids": [piece_id],
        "payment_type": sale.payment_type,
        "total_purchase_cost": share.cost,
        "total_selling_price": share.price,
        "profit_margin": share.profit,
        "small_advance_amount": share.reservation,
        "big_advance_amount": 0,
        "number_of_installments": None,
        "monthly_installment_amount": None,
        "status": status,
        "sale_date": sale.sale_date,
        "notes": notes,
        "created_by": sale.created_by,
    }


def is_confirmed(sale) -> bool:
    return (
        sale.status == SaleStatus.COMPLETED
        or sale.company_fee_amount is not None
        or money(sale.big_advance_amount) > 0
        or sale.confirmed_by is not None
    )


def is_listed_for_installments(sale) -> bool:
    """
    Whether a sale's installments belong on the installments screen.

    Cancelled sales are hidden, completed ones always shown. A sale sent back
    to confirmation (Pending, no big advance, no fee) is hidden, as is any
    sale that was never confirmed.
    """
    if sale is None or sale.status == SaleStatus.CANCELLED:
        return False
    if sale.status == SaleStatus.COMPLETED:
        return True
    if (sale.status == SaleStatus.PENDING and money(sale.big_advance_amount) == 0
            and sale.company_fee_amount is None and sale.confirmed_by is None):
        return False
    return is_confirmed(sale)


def derive_display_status(sale, installments: Sequence, payments: Sequence) -> SaleStatus:
    """Status shown for a sale, derived from its payments and installments."""
    if sale.status == SaleStatus.CANCELLED:
        return SaleStatus.CANCELLED
    if sale.status == SaleStatus.COMPLETED:
        return SaleStatus.COMPLETED

    total_paid = sum(money(p.amount_paid) for p in payments)
    reservation_paid = sum(money(p.amount_paid) for p in payments
                           if p.payment_type == PaymentRecordType.SMALL_ADVANCE)
    big_advance_paid = sum(money(p.amount_paid) for p in payments
                           if p.payment_type == PaymentRecordType.BIG_ADVANCE)
    confirmed = (
        total_paid > reservation_paid + TOLERANCE
        or (money(sale.big_advance_amount) > 0 and big_advance_paid > 0)
        or sale.confirmed_by is not None
    )
    if not confirmed:
        return SaleStatus.PENDING

    if sale.payment_type == PaymentType.INSTALLMENT:
        if installments and all(i.status == InstallmentStatus.PAID or is_settled(i) for i in installments):
            return SaleStatus.COMPLETED
        if big_advance_paid > 0 or installments:
            return SaleStatus.INSTALLMENTS_ONGOING
        return SaleStatus.AWAITING_PAYMENT

    if sale.payment_type == PaymentType.PROMISE_OF_SALE and sale.promise_completed:
        return SaleStatus.COMPLETED
    return SaleStatus.AWAITING_PAYMENT
