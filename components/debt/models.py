"""Debt models for the database."""

import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric, Text, func

from components.core.database import Base


class DebtStatus(str, enum.Enum):
    ACTIVE = "Active"
    PAID = "Paid"


class Debt(Base):
    """Money the office owes to a creditor."""
    __tablename__ = "debts"

    id = Column(Integer, primary_key=True, index=True)
    creditor_name = Column(String(150), nullable=False)
    amount_owed = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    check_number = Column(String(50), nullable=True)
    reference_number = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=DebtStatus.ACTIVE.value)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class DebtPayment(Base):
    """A payment made towards a debt."""
    __tablename__ = "debt_payments"

    id = Column(Integer, primary_key=True, index=True)
    debt_id = Column(Integer, ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
