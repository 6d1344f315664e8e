"""Debt arithmetic: what is left, and how much must be paid per day to clear it."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from components.debt.models import DebtStatus
from components.installment.calculations import money, round_money


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def total_paid(payments: Iterable) -> float:
    return sum(money(p.amount_paid) for p in payments)


def remaining(debt, payments: Iterable) -> float:
    return round_money(max(0.0, money(debt.amount_owed) - total_paid(payments)))


def days_remaining(debt, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (_as_date(debt.due_date) - today).days


def daily_payment(debt, remaining_amount: float, today: Optional[date] = None) -> float:
    """
    Amount to pay each day to clear ``remaining_amount`` by the due date.

    On or after the due date the whole remaining amount is due at once.
    """
    days = days_remaining(debt, today)
    if days <= 0:
        return round_money(remaining_amount)
    if remaining_amount <= 0:
        return 0.0
    return round_money(remaining_amount / days)


def today_required(debt, payments: Sequence, today: Optional[date] = None) -> float:
    """What is still to pay today once today's payments are counted."""
    today = today or date.today()
    paid_today = sum(money(p.amount_paid) for p in payments if _as_date(p.payment_date) == today)
    before_today = [p for p in payments if _as_date(p.payment_date) != today]
    required = daily_payment(debt, remaining(debt, before_today), today)
    return round_money(max(0.0, required - paid_today))


def progress(debt, today: Optional[date] = None) -> float:
    """Share of the period from creation to due date already elapsed, 0 to 100."""
    today = today or date.today()
    start = _as_date(debt.created_at) or today
    total_days = (_as_date(debt.due_date) - start).days
    if total_days <= 0:
        return 100.0
    elapsed = (today - start).days
    return round(min(100.0, max(0.0, elapsed / total_days * 100)), 2)


@dataclass
class DebtStats:
    active_count: int
    total_owed: float
    overdue_count: int
    overdue_amount: float
    paid_today: float
    required_today: float


def debt_stats(debts: Iterable, payments_by_debt: Dict[int, List], today: Optional[date] = None) -> DebtStats:
    """Totals over the active debts, as shown at the top of the debts screen."""
    today = today or date.today()
    stats = DebtStats(0, 0.0, 0, 0.0, 0.0, 0.0)
    for debt in debts:
        if debt.status != DebtStatus.ACTIVE:
            continue
        payments = payments_by_debt.get(debt.id, [])
        left = remaining(debt, payments)
        stats.active_count += 1
        stats.total_owed += left
        if _as_date(debt.due_date) < today and left > 0:
            stats.overdue_count += 1
            stats.overdue_amount += left
        stats.paid_today += sum(money(p.amount_paid) for p in payments if _as_date(p.payment_date) == today)
        stats.required_today += today_required(debt, payments, today)

    stats.total_owed = round_money(stats.total_owed)
    stats.overdue_amount = round_money(stats.overdue_amount)
    stats.paid_today = round_money(stats.paid_today)
    stats.required_today = round_money(stats.required_today)
    return stats
