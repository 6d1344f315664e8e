"""Pydantic schemas for installments, payments against them, merges and reports."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class InstallmentBase(BaseModel):
    """Base installment schema."""
    sale_id: int
    installment_number: int
    amount_due: float
    amount_paid: float
    stacked_amount: float
    due_date: date
    paid_date: Optional[date] = None
    status: str
    notes: Optional[str] = None


class Installment(InstallmentBase):
    """Schema for installment response."""
    id: int

    class Config:
        from_attributes = True


class InstallmentRow(Installment):
    """Installment as listed on the installments screen."""
    client_id: int
    sale_payment_type: str
    remaining_amount: float
    is_overdue: bool
    days_until_due: int


class SaleTotals(BaseModel):
    total_due: float
    total_paid: float
    total_unpaid: float
    paid_count: int
    installment_count: int


class SaleInstallments(BaseModel):
    """All installments of one sale with its totals."""
    sale_id: int
    client_id: int
    installments: List[InstallmentRow]
    totals: SaleTotals


class SuggestedPayment(BaseModel):
    installment_id: int
    sale_id: int
    amount: float
    months: int
    overdue_count: int
    month_totals: List[float]


class PaymentRequest(BaseModel):
    """Money received against a sale's installments."""
    amount: float = Field(..., description="Amount received")
    months: Optional[int] = Field(None, ge=1, description="Limit the payment to the first N unpaid installments")


class AllocationOut(BaseModel):
    installment_id: int
    installment_number: int
    amount: float
    amount_paid: float
    status: str


class PaymentResult(BaseModel):
    sale_id: int
    allocated: float
    leftover: float
    sale_status: str
    allocations: List[AllocationOut]


class StackResult(BaseModel):
    updated: int


class MergeRequest(BaseModel):
    """The first sale id is the one that survives the merge."""
    sale_ids: List[int] = Field(..., min_length=2)


class MergeableSale(BaseModel):
    sale_id: int
    remaining_count: int
    remaining_total: float
    average_monthly_amount: float


class MergeableGroup(BaseModel):
    client_id: int
    sales: List[MergeableSale]


class MonthCollection(BaseModel):
    """Schema for one month of the collection report."""
    month: int
    year: int
    scheduled_amount: float
    collected_amount: float
    collection_percentage: float
    num_payments: int
    collected_percentage_of_year: float


class YearSummary(BaseModel):
    """Schema for the yearly collection report."""
    year: int
    total_scheduled_amount: float
    total_collected_amount: float
    overall_collection_percentage: float
    total_num_payments: int
    monthly_summaries: List[MonthCollection]
