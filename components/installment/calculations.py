"""
Installment arithmetic.

Everything here is pure: functions take rows already loaded from the database
(ORM instances or anything with the same attributes) and return values or the
updates to write. Money columns arrive as ``Decimal`` and are handled as
``float`` rounded to cents, with ``AMOUNT_TOLERANCE`` (0.01 by default) used
for every "is it zero" comparison.
"""

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from components.core.exceptions import MergeError
from components.installment.models import InstallmentStatus
from components.sale.models import PaymentType, SaleStatus

TOLERANCE = 0.01
MERGE_TOTAL_TOLERANCE = 1.0


def money(value: Any) -> float:
    """Convert a Numeric column value (possibly None) to float."""
    return float(value or 0)


def round_money(value: float) -> float:
    return round(value + 0.0, 2)


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def remaining_amount(installment) -> float:
    """What is still owed on one installment, never negative."""
    return max(
        0.0,
        money(installment.amount_due) + money(installment.stacked_amount) - money(installment.amount_paid),
    )


def is_settled(installment, tolerance: float = TOLERANCE) -> bool:
    return remaining_amount(installment) <= tolerance


def is_overdue(installment, today: Optional[date] = None, tolerance: float = TOLERANCE) -> bool:
    """Due date passed and there is still money owed."""
    if installment.status == InstallmentStatus.PAID:
        return False
    if remaining_amount(installment) <= tolerance:
        return False
    today = today or date.today()
    return installment.due_date < today


def days_until_due(installment, today: Optional[date] = None) -> int:
    """Negative when the installment is overdue."""
    today = today or date.today()
    return (installment.due_date - today).days


def sort_installments(installments: Iterable) -> list:
    return sorted(installments, key=lambda i: i.installment_number)


def unpaid_installments(installments: Iterable, tolerance: float = TOLERANCE) -> list:
    """Rows with money still owed, in schedule order."""
    return [i for i in sort_installments(installments) if remaining_amount(i) > tolerance]


def filter_by_status(installments: Iterable, status: str, today: Optional[date] = None,
                     tolerance: float = TOLERANCE) -> list:
    """
    List filter used by the installments screen.

    ``Late`` means actually overdue (by date, not by stored status). ``Paid``
    only keeps rows marked Paid that still show a remainder, the ones that
    need attention.
    """
    rows = list(installments)
    if status == "all":
        return rows
    if status == InstallmentStatus.LATE:
        return [i for i in rows if is_overdue(i, today, tolerance)]
    if status == InstallmentStatus.PAID:
        return [i for i in rows if i.status == InstallmentStatus.PAID and remaining_amount(i) > tolerance]
    return [i for i in rows if i.status == status]


def cumulative_month_totals(unpaid: Sequence) -> List[float]:
    """Running totals for paying the first 1..N unpaid installments at once."""
    totals: List[float] = []
    running = 0.0
    for installment in unpaid:
        running = round_money(running + round_money(remaining_amount(installment)))
        totals.append(running)
    return totals


@dataclass
class SuggestedPayment:
    amount: float
    months: int
    overdue_count: int
    month_totals: List[float] = field(default_factory=list)


def suggest_payment(installments: Iterable, payment_type: str, today: Optional[date] = None,
                    tolerance: float = TOLERANCE) -> SuggestedPayment:
    """
    Default amount offered when a payment is opened for a sale.

    Installment sales get every overdue row pre-selected, or just the next
    row when nothing is overdue. Full sales get the whole remaining amount.
    """
    unpaid = unpaid_installments(installments, tolerance)
    totals = cumulative_month_totals(unpaid)
    if not unpaid:
        return SuggestedPayment(amount=0.0, months=0, overdue_count=0, month_totals=totals)

    overdue = [i for i in unpaid if is_overdue(i, today, tolerance)]
    if payment_type == PaymentType.FULL:
        amount = round_money(sum(remaining_amount(i) for i in unpaid))
        return SuggestedPayment(amount=amount, months=1, overdue_count=len(overdue), month_totals=totals)

    if overdue:
        amount = round_money(sum(remaining_amount(i) for i in overdue))
        return SuggestedPayment(amount=amount, months=len(overdue), overdue_count=len(overdue),
                                month_totals=totals)
    return SuggestedPayment(amount=round_money(remaining_amount(unpaid[0])), months=1,
                            overdue_count=0, month_totals=totals)


@dataclass
class SaleTotals:
    total_due: float
    total_paid: float
    total_unpaid: float
    paid_count: int
    installment_count: int


def sale_totals(installments: Sequence, big_advance: Any = 0, tolerance: float = TOLERANCE) -> SaleTotals:
    """Totals shown for one sale. The big advance counts as paid."""
    rows = list(installments)
    return SaleTotals(
        total_due=round_money(sum(money(i.amount_due) for i in rows)),
        total_paid=round_money(sum(money(i.amount_paid) for i in rows) + money(big_advance)),
        total_unpaid=round_money(sum(remaining_amount(i) for i in rows)),
        paid_count=sum(1 for i in rows if i.status == InstallmentStatus.PAID or remaining_amount(i) <= tolerance),
        installment_count=len(rows),
    )


def sale_status_after_payment(installments: Sequence, tolerance: float = TOLERANCE) -> SaleStatus:
    """Completed once every row is Paid or has nothing left on it (stacked sources)."""
    if installments and all(i.status == InstallmentStatus.PAID or is_settled(i, tolerance) for i in installments):
        return SaleStatus.COMPLETED
    return SaleStatus.INSTALLMENTS_ONGOING


@dataclass
class InstallmentUpdate:
    installment_id: int
    values: Dict[str, Any]


def plan_stacking(installments: Iterable, today: Optional[date] = None,
                  tolerance: float = TOLERANCE) -> List[InstallmentUpdate]:
    """
    Fold overdue remainders onto the next payable installment of each sale.

    The payable row is the first one with money owed that is not itself
    overdue. Earlier overdue rows are zeroed by raising ``amount_paid`` by
    their remainder; their status stays Unpaid or Late, never Paid. Nothing is
    planned when the payable row's ``stacked_amount`` already equals the
    overdue total, and a second run after the updates are applied finds no
    overdue remainder left.
    """
    today = today or date.today()
    by_sale: Dict[int, list] = defaultdict(list)
    for installment in installments:
        by_sale[installment.sale_id].append(installment)

    updates: List[InstallmentUpdate] = []
    for sale_id in sorted(by_sale):
        rows = sort_installments(by_sale[sale_id])
        target = next(
            (i for i in rows if remaining_amount(i) > tolerance and not is_overdue(i, today, tolerance)),
            None,
        )
        if target is None:
            continue

        sources = [
            i for i in rows
            if i.installment_number < target.installment_number and is_overdue(i, today, tolerance)
        ]
        total_to_stack = sum(remaining_amount(i) for i in sources)
        if total_to_stack <= tolerance:
            continue

        current_stacked = money(target.stacked_amount)
        if abs(current_stacked - total_to_stack) <= tolerance:
            continue

        updates.append(InstallmentUpdate(
            target.id, {"stacked_amount": round_money(current_stacked + total_to_stack)}
        ))
        for source in sources:
            updates.append(InstallmentUpdate(source.id, {
                "amount_paid": round_money(money(source.amount_paid) + remaining_amount(source)),
                "status": (InstallmentStatus.LATE if source.status == InstallmentStatus.LATE
                           else InstallmentStatus.UNPAID).value,
            }))
    return updates


@dataclass
class Allocation:
    installment: Any
    amount: float
    new_amount_paid: float
    status: str
    paid_date: Optional[date]

    @property
    def fully_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass
class AllocationResult:
    allocations: List[Allocation]
    leftover: float

    @property
    def allocated(self) -> float:
        return round_money(sum(a.amount for a in self.allocations))


def allocate_payment(amount: float, unpaid: Sequence, today: Optional[date] = None,
                     tolerance: float = TOLERANCE) -> AllocationResult:
    """
    Spread ``amount`` over ``unpaid`` in order.

    Each installment receives at most its remaining amount. It becomes Paid
    when what is left on it is within tolerance, Partial otherwise. Whatever
    cannot be placed is returned as ``leftover``.
    """
    today = today or date.today()
    left = round_money(float(amount))
    allocations: List[Allocation] = []

    for installment in unpaid:
        if left <= 0:
            break
        due_here = remaining_amount(installment)
        if due_here <= tolerance:
            continue

        portion = round_money(min(left, due_here))
        if portion <= 0:
            break
        new_paid = round_money(money(installment.amount_paid) + portion)
        total_required = money(installment.amount_due) + money(installment.stacked_amount)
        fully_paid = new_paid >= total_required - tolerance
        if fully_paid:
            status = InstallmentStatus.PAID.value
        elif new_paid > tolerance:
            status = InstallmentStatus.PARTIAL.value
        else:
            status = installment.status

        allocations.append(Allocation(
            installment=installment,
            amount=portion,
            new_amount_paid=new_paid,
            status=status,
            paid_date=today if fully_paid else None,
        ))
        left = round_money(left - portion)

    return AllocationResult(allocations=allocations, leftover=round_money(max(0.0, left)))


def build_schedule(sale_id: int, count: int, amount_due: float, start_date: date,
                   last_amount: Optional[float] = None) -> List[Dict[str, Any]]:
    """Monthly rows starting on ``start_date``; ``last_amount`` overrides the final row."""
    rows = []
    for index in range(count):
        due = amount_due
        if last_amount is not None and index == count - 1:
            due = last_amount
        rows.append({
            "sale_id": sale_id,
            "installment_number": index + 1,
            "amount_due": round_money(due),
            "amount_paid": 0.0,
            "stacked_amount": 0.0,
            "due_date": add_months(start_date, index),
            "status": InstallmentStatus.UNPAID.value,
        })
    return rows


@dataclass
class SaleSchedule:
    """A sale together with its installment rows, as the merge logic sees it."""
    sale_id: int
    client_id: int
    installments: List[Any]

    @property
    def unpaid(self) -> list:
        return unpaid_installments(self.installments)

    @property
    def remaining_count(self) -> int:
        return len(self.unpaid)

    @property
    def remaining_total(self) -> float:
        return round_money(sum(remaining_amount(i) for i in self.installments))

    @property
    def average_monthly_amount(self) -> float:
        unpaid = self.unpaid
        if not unpaid:
            return 0.0
        return round_money(sum(money(i.amount_due) for i in unpaid) / len(unpaid))


def _group_matches(schedules: Sequence[SaleSchedule], total_tolerance: float) -> bool:
    first = schedules[0]
    return all(
        s.remaining_count == first.remaining_count
        and abs(s.remaining_total - first.remaining_total) < total_tolerance
        for s in schedules
    )


def find_mergeable_groups(schedules: Iterable[SaleSchedule],
                          total_tolerance: float = MERGE_TOTAL_TOLERANCE) -> List[List[SaleSchedule]]:
    """
    Group a client's sales that could share one schedule.

    Sales are keyed on client, remaining count and average monthly amount;
    a key with two or more sales is offered when the remaining totals agree
    within ``total_tolerance``.
    """
    by_key: Dict[tuple, List[SaleSchedule]] = defaultdict(list)
    for schedule in schedules:
        if schedule.remaining_count == 0:
            continue
        key = (schedule.client_id, schedule.remaining_count, f"{schedule.average_monthly_amount:.2f}")
        by_key[key].append(schedule)

    groups = []
    for key in sorted(by_key):
        group = by_key[key]
        if len(group) >= 2 and _group_matches(group, total_tolerance):
            groups.append(group)
    return groups


def validate_merge_group(schedules: Sequence[SaleSchedule],
                         total_tolerance: float = MERGE_TOTAL_TOLERANCE) -> None:
    """Raise ``MergeError`` unless the sales can be merged."""
    if len(schedules) < 2:
        raise MergeError("At least two sales are needed for a merge")
    if len({s.client_id for s in schedules}) != 1:
        raise MergeError("Only sales of the same client can be merged")
    for schedule in schedules:
        if schedule.remaining_count == 0:
            raise MergeError(f"Sale {schedule.sale_id} has no remaining installments to merge")
    first = schedules[0]
    for schedule in schedules[1:]:
        if schedule.remaining_count != first.remaining_count:
            raise MergeError(
                f"Remaining installment count differs: sale {first.sale_id} has {first.remaining_count}, "
                f"sale {schedule.sale_id} has {schedule.remaining_count}"
            )
        if abs(schedule.remaining_total - first.remaining_total) >= total_tolerance:
            raise MergeError(
                f"Remaining totals differ: sale {first.sale_id} owes {first.remaining_total:.2f}, "
                f"sale {schedule.sale_id} owes {schedule.remaining_total:.2f}"
            )


def build_merged_schedule(schedules: Sequence[SaleSchedule], target_sale_id: int) -> List[Dict[str, Any]]:
    """
    One schedule for the whole group on ``target_sale_id``.

    The new schedule is as long as the longest original one and starts on the
    target sale's first due date. It carries the group's total ``amount_due``
    and is credited, from the first row on, with everything already paid
    (total due minus total outstanding), so the outstanding total is the same
    before and after the merge.
    """
    target = next(s for s in schedules if s.sale_id == target_sale_id)
    all_rows = [i for s in schedules for i in s.installments]
    count = max(len(s.installments) for s in schedules)
    start_date = sort_installments(target.installments)[0].due_date

    total_due = round_money(sum(money(i.amount_due) for i in all_rows))
    outstanding = round_money(sum(remaining_amount(i) for i in all_rows))
    paid = round_money(total_due - outstanding)

    monthly = round_money(total_due / count)
    last = round_money(total_due - monthly * (count - 1))
    rows = build_schedule(target_sale_id, count, monthly, start_date, last_amount=last)

    left = paid
    for row in rows:
        if left <= TOLERANCE:
            break
        if left >= row["amount_due"] - TOLERANCE:
            row["amount_paid"] = row["amount_due"]
            row["status"] = InstallmentStatus.PAID.value
            left = round_money(left - row["amount_due"])
        else:
            row["amount_paid"] = round_money(left)
            row["status"] = InstallmentStatus.PARTIAL.value
            left = 0.0
    return rows
