"""Land piece model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Numeric

from components.core.database import Base


class LandStatus(str, enum.Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"
    CANCELLED = "Cancelled"


class LandPiece(Base):
    """One sellable piece of a land batch."""
    __tablename__ = "land_pieces"

    id = Column(Integer, primary_key=True, index=True)
    land_batch = Column(String(100), nullable=False)
    piece_number = Column(String(20), nullable=False)
    surface_area = Column(Numeric(12, 2), nullable=False)
    purchase_cost = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price_full = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price_installment = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=LandStatus.AVAILABLE.value)
