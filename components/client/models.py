"""Client model for the database."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func

from components.core.database import Base


class Client(Base):
    """A person who buys land pieces."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    cin = Column(String(20), unique=True, nullable=False, index=True)  # National ID card number
    phone = Column(String(30), nullable=True)
    email = Column(String(150), nullable=True)
    address = Column(String(255), nullable=True)
    client_type = Column(String(30), nullable=False, default="Individual")
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
