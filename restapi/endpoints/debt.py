"""Debt endpoints for the API."""

import io
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.debt import calculations, schemas
from components.debt.repository import DebtRepository
from components.user import utils
from components.user.models import User
from restapi.endpoints.auth import get_current_user, require_permission

router = APIRouter(
    prefix="/debts",
    tags=["debts"],
    responses={404: {"description": "Not found"}},
)


def to_schema(debt, payments, today: date) -> schemas.Debt:
    left = calculations.remaining(debt, payments)
    return schemas.Debt(
        **schemas.DebtBase.model_validate(debt, from_attributes=True).model_dump(),
        id=debt.id,
        status=debt.status,
        created_at=debt.created_at,
        remaining=left,
        daily_payment=calculations.daily_payment(debt, left, today),
        today_required=calculations.today_required(debt, payments, today),
        progress=calculations.progress(debt, today),
    )


@router.get("/", response_model=List[schemas.Debt])
async def read_debts(
    status: Optional[str] = Query(None, description="Active or Paid"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Debts with their remaining amount and daily requirement."""
    repo = DebtRepository(db)
    debts = await repo.get_all(status=status)
    payments = await repo.get_payments_by_debt()
    today = date.today()
    return [to_schema(debt, payments.get(debt.id, []), today) for debt in debts]


@router.get("/stats", response_model=schemas.DebtStats)
async def read_debt_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Totals over the active debts."""
    repo = DebtRepository(db)
    stats = calculations.debt_stats(await repo.get_all(), await repo.get_payments_by_debt())
    return schemas.DebtStats(**vars(stats))


@router.post("/", response_model=schemas.Debt)
async def create_debt(
    debt: schemas.DebtCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_DEBTS))
):
    created = await DebtRepository(db).create(debt.model_dump())
    return to_schema(created, [], date.today())


@router.post("/upload", response_model=schemas.DebtUploadResponse)
async def upload_debts(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_DEBTS))
):
    """
    Upload debts from a tab-delimited CSV file.

    The CSV file must have the following columns:
    - creditor_name
    - amount_owed: positive number
    - due_date: DD.MM.YYYY

    Optional columns: check_number, reference_number, notes. Nothing is
    inserted unless every row is valid.
    """
    if not file.filename or not file.filename.endswith(".csv"):
        return schemas.DebtUploadResponse(
            success=False,
            message="Invalid file format. Only CSV files (.csv) are supported."
        )

    file_content = await file.read()
    success, message, errors = await DebtRepository(db).upload_debts_from_csv(io.BytesIO(file_content))
    if not success:
        return schemas.DebtUploadResponse(
            success=False,
            message=message,
            errors=[schemas.DebtUploadError(**error) for error in errors]
        )
    return schemas.DebtUploadResponse(success=True, message=message)


@router.put("/{debt_id}", response_model=schemas.Debt)
async def update_debt(
    debt_id: int,
    debt: schemas.DebtUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_DEBTS))
):
    repo = DebtRepository(db)
    updated = await repo.update(debt_id, debt.model_dump(exclude_unset=True))
    if updated is None:
        raise HTTPException(status_code=404, detail="Debt not found")
    return to_schema(updated, await repo.get_payments(debt_id), date.today())


@router.delete("/{debt_id}")
async def delete_debt(
    debt_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_DEBTS))
):
    if not await DebtRepository(db).delete(debt_id):
        raise HTTPException(status_code=404, detail="Debt not found")
    return {"message": "Debt deleted successfully"}


@router.post("/{debt_id}/payments", response_model=schemas.DebtPayment)
async def pay_debt(
    debt_id: int,
    payment: schemas.DebtPaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(utils.MANAGE_DEBTS))
):
    """Record a payment towards a debt."""
    repo = DebtRepository(db)
    debt = await repo.get_by_id(debt_id)
    if debt is None:
        raise HTTPException(status_code=404, detail="Debt not found")
    values = payment.model_dump()
    values["payment_date"] = payment.payment_date or date.today()
    return await repo.record_payment(debt, values)
