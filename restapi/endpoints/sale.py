"""Sale endpoints: details, per-piece values and the confirmation workflow."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.installment.schemas import Installment, SaleTotals
from components.sale import schemas
from components.sale.service import SaleService
from components.user import utils
from components.user.models import User
from restapi.endpoints.auth import get_current_user, require_permission

router = APIRouter(
    prefix="/sales",
    tags=["sales"],
    responses={404: {"description": "Not found"}},
)


def get_sale_service(db: AsyncSession = Depends(get_db)) -> SaleService:
    return SaleService.from_session(db)


@router.get("/{sale_id}", response_model=schemas.SaleDetail)
async def read_sale(
    sale_id: int,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user)
):
    """A sale with its installments, payments, totals and displayed status."""
    detail = await service.detail(sale_id)
    return schemas.SaleDetail(
        sale=schemas.Sale.model_validate(detail.sale),
        display_status=detail.display_status.value,
        totals=SaleTotals(**vars(detail.totals)),
        installments=[Installment.model_validate(i) for i in detail.installments],
        payments=[schemas.Payment.model_validate(p) for p in detail.payments],
    )


@router.get("/{sale_id}/pieces/{piece_id}/values", response_model=schemas.PieceValues)
async def read_piece_values(
    sale_id: int,
    piece_id: int,
    fee_percentage: Optional[float] = Query(None, ge=0, le=100),
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user)
):
    """Price, reservation share, company fee and amount due for one piece."""
    values = await service.piece_values(sale_id, piece_id, fee_percentage)
    return schemas.PieceValues(**vars(values), remaining_for_full=values.remaining_for_full)


@router.post("/{sale_id}/confirm", response_model=schemas.Sale)
async def confirm_sale_piece(
    sale_id: int,
    confirmation: schemas.ConfirmRequest,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    """
    Confirm one piece of a sale.

    Returns the confirmed sale, which is a new sale when the piece was split
    off a multi-piece sale.
    """
    return await service.confirm_piece(
        sale_id,
        confirmation.piece_id,
        confirmation.kind,
        confirmation.received,
        months=confirmation.months,
        start_date=confirmation.start_date,
        fee_percentage=confirmation.fee_percentage,
        promise_completion_date=confirmation.promise_completion_date,
        confirmed_by=current_user.id,
        payment_method=confirmation.payment_method,
    )


@router.post("/{sale_id}/complete-promise", response_model=schemas.Sale)
async def complete_promise(
    sale_id: int,
    completion: schemas.CompletePromiseRequest,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(require_permission(utils.RECORD_PAYMENTS))
):
    """Record the final payment of a promise of sale."""
    return await service.complete_promise(
        sale_id, completion.received, recorded_by=current_user.id, payment_method=completion.payment_method
    )


@router.post("/{sale_id}/cancel-piece", response_model=schemas.Sale)
async def cancel_piece(
    sale_id: int,
    cancellation: schemas.CancelPieceRequest,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(require_permission(utils.EDIT_SALES))
):
    """Cancel one piece and refund its share of what was paid."""
    return await service.cancel_piece(sale_id, cancellation.piece_id, recorded_by=current_user.id)
