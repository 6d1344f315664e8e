"""Pydantic schemas for debt data validation."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DebtBase(BaseModel):
    """Base debt schema."""
    creditor_name: str = Field(..., min_length=1, max_length=150)
    amount_owed: float = Field(..., gt=0)
    due_date: date
    check_number: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class DebtCreate(DebtBase):
    """Schema for debt creation."""
    pass


class DebtUpdate(BaseModel):
    """Schema for debt update, every field optional."""
    creditor_name: Optional[str] = Field(None, min_length=1, max_length=150)
    amount_owed: Optional[float] = Field(None, gt=0)
    due_date: Optional[date] = None
    check_number: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class Debt(DebtBase):
    """Schema for debt response with its running figures."""
    id: int
    status: str
    created_at: Optional[datetime] = None
    remaining: float = 0
    daily_payment: float = 0
    today_required: float = 0
    progress: float = 0

    class Config:
        from_attributes = True


class DebtPaymentCreate(BaseModel):
    amount_paid: float = Field(..., gt=0)
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class DebtPayment(BaseModel):
    """Schema for debt payment response."""
    id: int
    debt_id: int
    amount_paid: float
    payment_date: date
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class DebtStats(BaseModel):
    active_count: int
    total_owed: float
    overdue_count: int
    overdue_amount: float
    paid_today: float
    required_today: float


class DebtUploadError(BaseModel):
    """Schema for debt upload error."""
    row: int
    message: str


class DebtUploadResponse(BaseModel):
    """Schema for debt upload response."""
    success: bool
    message: str
    errors: Optional[List[DebtUploadError]] = None
