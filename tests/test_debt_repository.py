import io
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from components.debt.repository import DebtRepository


def csv_file(*lines):
    return io.BytesIO("\n".join(lines).encode("utf-8"))


@pytest.fixture
def session():
    session = MagicMock()
    session.commit = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_upload_debts_from_csv(session):
    content = csv_file(
        "creditor_name\tamount_owed\tdue_date\tcheck_number\tnotes",
        "Cement supplier\t15000\t01.08.2024\t0012345\t",
        "Surveyor\t1500,50\t15.07.2024\t\tsecond visit",
    )

    success, message, errors = await DebtRepository(session).upload_debts_from_csv(content)

    assert success is True
    assert message == "Successfully uploaded 2 debts"
    assert errors == []
    [debts] = session.add_all.call_args.args
    assert [d.creditor_name for d in debts] == ["Cement supplier", "Surveyor"]
    assert [d.amount_owed for d in debts] == [15000, 1500.5]
    assert debts[0].due_date == date(2024, 8, 1)
    assert debts[0].check_number == "0012345"
    assert debts[0].notes is None
    assert debts[1].check_number is None
    assert debts[1].reference_number is None
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_upload_rejects_missing_columns(session):
    content = csv_file("creditor_name\tamount_owed", "Supplier\t100")

    success, message, errors = await DebtRepository(session).upload_debts_from_csv(content)

    assert success is False
    assert "due_date" in message
    session.add_all.assert_not_called()


@pytest.mark.asyncio
async def test_upload_reports_every_bad_row(session):
    content = csv_file(
        "creditor_name\tamount_owed\tdue_date",
        "Supplier\t100\t01.08.2024",
        "\t100\t01.08.2024",
        "Bank\tabc\t01.08.2024",
        "Bank\t-5\t01.08.2024",
        "Bank\tinf\t01.08.2024",
        "Bank\t100\t2024-08-01",
    )

    success, message, errors = await DebtRepository(session).upload_debts_from_csv(content)

    assert success is False
    assert message == "Validation errors occurred"
    assert [e["row"] for e in errors] == [3, 4, 5, 6, 7]
    assert errors[3]["message"] == "Amount owed must be a positive number"
    assert "Expected DD.MM.YYYY" in errors[-1]["message"]
    session.add_all.assert_not_called()
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_upload_empty_file(session):
    content = csv_file("creditor_name\tamount_owed\tdue_date")

    success, message, _ = await DebtRepository(session).upload_debts_from_csv(content)

    assert success is False
    assert message == "CSV file contains no debts"
