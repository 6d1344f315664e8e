"""Payment model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Date, ForeignKey, Numeric, Text

from components.core.database import Base


class PaymentRecordType(str, enum.Enum):
    BIG_ADVANCE = "BigAdvance"
    SMALL_ADVANCE = "SmallAdvance"
    INSTALLMENT = "Installment"
    FULL = "Full"
    PARTIAL = "Partial"
    INITIAL_PAYMENT = "InitialPayment"
    FIELD = "Field"
    REFUND = "Refund"


class Payment(Base):
    """Money received from a client. Rows are never updated except to re-point a merged sale."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True, index=True)
    installment_id = Column(Integer, ForeignKey("installments.id", ondelete="SET NULL"), nullable=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_type = Column(String(20), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(20), nullable=False, default="Cash")
    notes = Column(Text, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
