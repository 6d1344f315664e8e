"""Sale model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Date, Numeric, Boolean, ForeignKey, JSON, Text

from components.core.database import Base


class PaymentType(str, enum.Enum):
    FULL = "Full"
    INSTALLMENT = "Installment"
    PROMISE_OF_SALE = "PromiseOfSale"


class SaleStatus(str, enum.Enum):
    PENDING = "Pending"
    AWAITING_PAYMENT = "AwaitingPayment"
    INSTALLMENTS_ONGOING = "InstallmentsOngoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Sale(Base):
    """A land-purchase agreement covering one or more land pieces."""
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    land_piece_ids = Column(JSON, nullable=False, default=list)
    payment_type = Column(String(20), nullable=False)
    total_purchase_cost = Column(Numeric(12, 2), nullable=False, default=0)
    total_selling_price = Column(Numeric(12, 2), nullable=False, default=0)
    profit_margin = Column(Numeric(12, 2), nullable=False, default=0)
    small_advance_amount = Column(Numeric(12, 2), nullable=False, default=0)
    big_advance_amount = Column(Numeric(12, 2), nullable=False, default=0)
    company_fee_percentage = Column(Numeric(5, 2), nullable=True)
    company_fee_amount = Column(Numeric(12, 2), nullable=True)
    installment_start_date = Column(Date, nullable=True)
    installment_end_date = Column(Date, nullable=True)
    number_of_installments = Column(Integer, nullable=True)
    monthly_installment_amount = Column(Numeric(12, 2), nullable=True)
    promise_initial_payment = Column(Numeric(12, 2), nullable=True)
    promise_completion_date = Column(Date, nullable=True)
    promise_completed = Column(Boolean, nullable=False, default=False)
    status = Column(String(30), nullable=False, default=SaleStatus.PENDING.value)
    sale_date = Column(Date, nullable=False)
    deadline_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
