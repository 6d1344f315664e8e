"""Pydantic schemas for client data validation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from components.installment.schemas import SaleTotals
from components.sale.schemas import Sale


class ClientBase(BaseModel):
    """Base client schema."""
    name: str = Field(..., min_length=1, max_length=150)
    cin: str = Field(..., min_length=1, max_length=20)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    client_type: str = "Individual"
    notes: Optional[str] = None


class ClientCreate(ClientBase):
    """Schema for client creation."""
    pass


class ClientUpdate(BaseModel):
    """Schema for client update, every field optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    cin: Optional[str] = Field(None, min_length=1, max_length=20)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    client_type: Optional[str] = None
    notes: Optional[str] = None


class Client(ClientBase):
    """Schema for client response."""
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientSale(BaseModel):
    """A client's sale with its payment totals."""
    sale: Sale
    display_status: str
    totals: SaleTotals
