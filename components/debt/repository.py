"""Repository for debts and debt payments."""

import math
from collections import defaultdict
from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.logging import get_logger
from components.debt import calculations
from components.debt.models import Debt, DebtPayment, DebtStatus

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("creditor_name", "amount_owed", "due_date")
OPTIONAL_COLUMNS = ("check_number", "reference_number", "notes")


class DebtRepository:
    """Repository for debts and debt payments."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, values: Dict[str, Any]) -> Debt:
        debt = Debt(**values)
        self.session.add(debt)
        await self.session.commit()
        await self.session.refresh(debt)
        return debt

    async def get_by_id(self, debt_id: int) -> Optional[Debt]:
        result = await self.session.execute(select(Debt).where(Debt.id == debt_id))
        return result.scalar_one_or_none()

    async def get_all(self, status: Optional[str] = None) -> List[Debt]:
        query = select(Debt)
        if status:
            query = query.where(Debt.status == status)
        result = await self.session.execute(query.order_by(Debt.due_date, Debt.id))
        return list(result.scalars().all())

    async def update(self, debt_id: int, values: Dict[str, Any]) -> Optional[Debt]:
        debt = await self.get_by_id(debt_id)
        if not debt:
            return None
        for key, value in values.items():
            setattr(debt, key, value)
        await self.session.commit()
        await self.session.refresh(debt)
        return debt

    async def delete(self, debt_id: int) -> bool:
        debt = await self.get_by_id(debt_id)
        if not debt:
            return False
        await self.session.delete(debt)
        await self.session.commit()
        return True

    async def add_payment(self, values: Dict[str, Any]) -> DebtPayment:
        payment = DebtPayment(**values)
        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def record_payment(self, debt: Debt, values: Dict[str, Any]) -> DebtPayment:
        """Add a payment and mark the debt Paid once nothing is left."""
        payment = await self.add_payment({"debt_id": debt.id, **values})
        left = calculations.remaining(debt, await self.get_payments(debt.id))
        if left <= 0 and debt.status != DebtStatus.PAID:
            await self.update(debt.id, {"status": DebtStatus.PAID.value})
            logger.info("Debt %d to %s is fully paid", debt.id, debt.creditor_name, extra={"debt_id": debt.id})
        return payment

    async def get_payments(self, debt_id: int) -> List[DebtPayment]:
        result = await self.session.execute(
            select(DebtPayment).where(DebtPayment.debt_id == debt_id).order_by(DebtPayment.payment_date)
        )
        return list(result.scalars().all())

    async def get_payments_by_debt(self) -> Dict[int, List[DebtPayment]]:
        result = await self.session.execute(select(DebtPayment))
        grouped: Dict[int, List[DebtPayment]] = defaultdict(list)
        for payment in result.scalars().all():
            grouped[payment.debt_id].append(payment)
        return grouped

    async def upload_debts_from_csv(self, file_content: BinaryIO) -> Tuple[bool, str, List[Dict]]:
        """
        Upload debts from a tab-delimited CSV file.

        Every row is validated before anything is inserted; a single bad row
        rejects the whole file.

        Returns:
            Tuple containing:
            - Success status (bool)
            - Message (str)
            - List of errors if any (List[Dict])
        """
        try:
            frame = pd.read_csv(file_content, sep="\t", dtype=str)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            return False, f"Could not read CSV file: {e}", []

        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            return False, f"CSV file must contain {', '.join(repr(c) for c in REQUIRED_COLUMNS)} columns", []

        errors: List[Dict] = []
        rows: List[Dict[str, Any]] = []
        # Row numbers start at 2 to account for the header row
        for row_num, row in enumerate(frame.to_dict("records"), start=2):
            creditor = row.get("creditor_name")
            if pd.isna(creditor) or not str(creditor).strip():
                errors.append({"row": row_num, "message": "Creditor name cannot be empty"})
                continue

            raw_amount = row.get("amount_owed")
            try:
                amount = float(str(raw_amount).replace(",", "."))
            except ValueError:
                errors.append({"row": row_num, "message": f"Invalid amount_owed value: {raw_amount}"})
                continue
            if not math.isfinite(amount) or amount <= 0:
                errors.append({"row": row_num, "message": "Amount owed must be a positive number"})
                continue

            raw_due = row.get("due_date")
            try:
                due_date = datetime.strptime(str(raw_due).strip(), "%d.%m.%Y").date()
            except ValueError:
                errors.append({
                    "row": row_num,
                    "message": f"Invalid date format for due_date: {raw_due}. Expected DD.MM.YYYY",
                })
                continue

            values: Dict[str, Any] = {
                "creditor_name": str(creditor).strip(),
                "amount_owed": round(amount, 2),
                "due_date": due_date,
            }
            for column in OPTIONAL_COLUMNS:
                cell = row.get(column)
                values[column] = None if cell is None or pd.isna(cell) else str(cell).strip()
            rows.append(values)

        if errors:
            return False, "Validation errors occurred", errors
        if not rows:
            return False, "CSV file contains no debts", []

        self.session.add_all([Debt(**values) for values in rows])
        await self.session.commit()
        logger.info("Imported %d debts from CSV", len(rows))
        return True, f"Successfully uploaded {len(rows)} debts", []
