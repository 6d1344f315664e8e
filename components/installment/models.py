"""Installment model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Date, Numeric, ForeignKey, Text, UniqueConstraint

from components.core.database import Base


class InstallmentStatus(str, enum.Enum):
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    LATE = "Late"


class Installment(Base):
    """One scheduled payment of an installment sale."""
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("sale_id", "installment_number", name="uq_sale_installment_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    stacked_amount = Column(Numeric(12, 2), nullable=False, default=0)  # Overdue remainder folded in from earlier rows
    due_date = Column(Date, nullable=False, index=True)
    paid_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=InstallmentStatus.UNPAID.value)
    notes = Column(Text, nullable=True)
