"""Installment endpoints: listing, payments, stacking, merges and the collection report."""

from datetime import date
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.installment import calculations as calc
from components.installment import schemas
from components.installment.service import InstallmentService
from components.installment.stacking import StackingScheduler
from components.sale import schemas as sale_schemas
from components.user import utils
from components.user.models import User
from restapi.endpoints.auth import get_current_user, require_permission

router = APIRouter(
    prefix="/installments",
    tags=["installments"],
    responses={404: {"description": "Not found"}},
)

StatusFilter = Literal["all", "Late", "Paid", "Unpaid", "Partial"]


def get_stacking_scheduler(request: Request) -> Optional[StackingScheduler]:
    return getattr(request.app.state, "stacking_scheduler", None)


def get_installment_service(
    db: AsyncSession = Depends(get_db),
    scheduler: Optional[StackingScheduler] = Depends(get_stacking_scheduler),
) -> InstallmentService:
    return InstallmentService.from_session(db, scheduler=scheduler)


def to_row(installment, sale, today: date) -> schemas.InstallmentRow:
    return schemas.InstallmentRow(
        **schemas.Installment.model_validate(installment).model_dump(),
        client_id=sale.client_id,
        sale_payment_type=sale.payment_type,
        remaining_amount=calc.round_money(calc.remaining_amount(installment)),
        is_overdue=calc.is_overdue(installment, today),
        days_until_due=calc.days_until_due(installment, today),
    )


@router.get("/", response_model=List[schemas.InstallmentRow])
async def read_installments(
    status: StatusFilter = Query("all", description="Late means overdue by date"),
    sale_id: Optional[int] = Query(None),
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(get_current_user)
):
    """Installments of confirmed sales, ordered by due date."""
    today = date.today()
    pairs = await service.list_installments(status=status, sale_id=sale_id, today=today)
    return [to_row(installment, sale, today) for installment, sale in pairs]


@router.get("/sales/{sale_id}", response_model=schemas.SaleInstallments)
async def read_sale_installments(
    sale_id: int,
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(get_current_user)
):
    """All installments of one sale with its totals."""
    today = date.today()
    sale, rows, totals = await service.sale_installments(sale_id)
    return schemas.SaleInstallments(
        sale_id=sale.id,
        client_id=sale.client_id,
        installments=[to_row(row, sale, today) for row in rows],
        totals=schemas.SaleTotals(**vars(totals)),
    )


@router.get("/mergeable", response_model=List[schemas.MergeableGroup])
async def read_mergeable(
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(get_current_user)
):
    """Groups of a client's sales that could share one schedule."""
    groups = await service.find_mergeable()
    return [
        schemas.MergeableGroup(
            client_id=group[0].client_id,
            sales=[
                schemas.MergeableSale(
                    sale_id=s.sale_id,
                    remaining_count=s.remaining_count,
                    remaining_total=s.remaining_total,
                    average_monthly_amount=s.average_monthly_amount,
                )
                for s in group
            ],
        )
        for group in groups
    ]


@router.get("/year-summary", response_model=schemas.YearSummary)
async def read_year_summary(
    year: int = Query(..., ge=2000, le=2100, description="Year to analyze"),
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(get_current_user)
):
    """
    Monthly collection report for a year.

    For each month: the amount scheduled, the amount collected, the
    collection percentage, the number of payments and the month's share of
    the year's collections.
    """
    return await service.year_summary(year)


@router.post("/stack", response_model=schemas.StackResult)
async def stack_overdue(
    service: InstallmentService = Depends(get_installment_service),
    scheduler: Optional[StackingScheduler] = Depends(get_stacking_scheduler),
    current_user: User = Depends(require_permission(utils.RECORD_PAYMENTS))
):
    """Run the overdue stacking sweep now."""
    if scheduler is not None:
        return schemas.StackResult(updated=await scheduler.run_now())
    return schemas.StackResult(updated=await service.stack_overdue())


@router.post("/merge", response_model=sale_schemas.Sale)
async def merge_sales(
    merge: schemas.MergeRequest,
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    """Merge sales into the first one given and return the surviving sale."""
    return await service.merge_sales(merge.sale_ids)


@router.get("/{installment_id}/suggested-payment", response_model=schemas.SuggestedPayment)
async def read_suggested_payment(
    installment_id: int,
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(get_current_user)
):
    """Amount pre-filled when a payment is opened from this installment."""
    installment, suggestion = await service.suggested_payment(installment_id)
    return schemas.SuggestedPayment(
        installment_id=installment.id,
        sale_id=installment.sale_id,
        amount=suggestion.amount,
        months=suggestion.months,
        overdue_count=suggestion.overdue_count,
        month_totals=suggestion.month_totals,
    )


@router.post("/{installment_id}/pay", response_model=schemas.PaymentResult)
async def pay_installment(
    installment_id: int,
    payment: schemas.PaymentRequest,
    service: InstallmentService = Depends(get_installment_service),
    current_user: User = Depends(require_permission(utils.RECORD_PAYMENTS))
):
    """Record a payment starting from the sale's oldest unpaid installment."""
    outcome = await service.record_payment(
        installment_id, payment.amount, months=payment.months, recorded_by=current_user.id
    )
    return schemas.PaymentResult(
        sale_id=outcome.sale_id,
        allocated=outcome.allocation.allocated,
        leftover=outcome.allocation.leftover,
        sale_status=outcome.sale_status.value,
        allocations=[
            schemas.AllocationOut(
                installment_id=a.installment.id,
                installment_number=a.installment.installment_number,
                amount=a.amount,
                amount_paid=a.new_amount_paid,
                status=a.status,
            )
            for a in outcome.allocation.allocations
        ],
    )
