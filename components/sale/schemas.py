"""Pydantic schemas for sale data validation."""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from components.installment.schemas import Installment, SaleTotals


class Sale(BaseModel):
    """Schema for sale response."""
    id: int
    client_id: int
    land_piece_ids: List[int]
    payment_type: str
    total_purchase_cost: float
    total_selling_price: float
    profit_margin: float
    small_advance_amount: float
    big_advance_amount: float
    company_fee_percentage: Optional[float] = None
    company_fee_amount: Optional[float] = None
    installment_start_date: Optional[date] = None
    installment_end_date: Optional[date] = None
    number_of_installments: Optional[int] = None
    monthly_installment_amount: Optional[float] = None
    promise_initial_payment: Optional[float] = None
    promise_completion_date: Optional[date] = None
    promise_completed: bool = False
    status: str
    sale_date: date
    deadline_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    confirmed_by: Optional[int] = None

    class Config:
        from_attributes = True


class Payment(BaseModel):
    """Schema for a payment record."""
    id: int
    client_id: int
    sale_id: Optional[int] = None
    installment_id: Optional[int] = None
    amount_paid: float
    payment_type: str
    payment_date: date
    payment_method: str
    notes: Optional[str] = None
    recorded_by: Optional[int] = None

    class Config:
        from_attributes = True


class SaleDetail(BaseModel):
    sale: Sale
    display_status: str
    totals: SaleTotals
    installments: List[Installment]
    payments: List[Payment]


class PieceValues(BaseModel):
    price: float
    cost: float
    profit: float
    reservation: float
    company_fee: float
    total_payable: float
    fee_percentage: float
    remaining_for_full: float


class ConfirmRequest(BaseModel):
    """Confirmation of one piece of a sale."""
    piece_id: int
    kind: Literal["full", "big_advance", "promise"]
    received: float = Field(..., ge=0)
    months: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    fee_percentage: Optional[float] = Field(None, ge=0, le=100)
    promise_completion_date: Optional[date] = None
    payment_method: str = "Cash"


class CompletePromiseRequest(BaseModel):
    received: float = Field(..., gt=0)
    payment_method: str = "Cash"


class CancelPieceRequest(BaseModel):
    piece_id: int
