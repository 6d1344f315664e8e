import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from components.core.exceptions import EntityNotFoundError, MergeError, StaleDataError, ValidationError
from components.installment.calculations import add_months, remaining_amount
from tests.conftest import TODAY, make_installment, make_sale


def rows_for(sale_id, count, first_due, first_id, amount=100, paid=()):
    rows = []
    for index in range(count):
        amount_paid = paid[index] if index < len(paid) else 0
        rows.append(make_installment(
            first_id + index, sale_id, index + 1, add_months(first_due, index),
            amount_due=amount, amount_paid=amount_paid,
            status="Paid" if amount_paid >= amount else ("Partial" if amount_paid else "Unpaid"),
        ))
    return rows


@pytest.fixture
def office(make_office):
    sale = make_sale(1)
    return make_office(sales=[sale], installments=rows_for(1, 3, TODAY + timedelta(days=5), 1))


@pytest.mark.asyncio
async def test_record_payment_spreads_amount_and_records_payments(office):
    service = office.installment_service()

    outcome = await service.record_payment(1, 250, recorded_by=3, today=TODAY)

    rows = await office.installments.get_for_sale(1)
    assert [r.status for r in rows] == ["Paid", "Paid", "Partial"]
    assert [float(r.amount_paid) for r in rows] == [100, 100, 50]
    assert rows[0].paid_date == TODAY
    assert [float(p.amount_paid) for p in office.payments.payments] == [100, 100, 50]
    assert all(p.payment_type == "Installment" and p.recorded_by == 3 for p in office.payments.payments)
    assert [p.installment_id for p in office.payments.payments] == [1, 2, 3]
    assert outcome.sale_status == "InstallmentsOngoing"
    assert office.sales.sales[1].status == "InstallmentsOngoing"


@pytest.mark.asyncio
async def test_record_payment_limited_to_months(office):
    service = office.installment_service()

    outcome = await service.record_payment(1, 500, months=2, today=TODAY)

    assert outcome.allocation.allocated == 200
    assert outcome.allocation.leftover == 300
    assert office.installments.rows[3].status == "Unpaid"


@pytest.mark.asyncio
async def test_paying_everything_completes_the_sale(office):
    service = office.installment_service()

    outcome = await service.record_payment(1, 300, today=TODAY)

    assert outcome.sale_status == "Completed"
    assert office.sales.sales[1].status == "Completed"


@pytest.mark.asyncio
async def test_overpayment_is_logged_and_not_stored(office, caplog):
    service = office.installment_service()

    with caplog.at_level(logging.WARNING, logger="components.installment.service"):
        outcome = await service.record_payment(1, 350, today=TODAY)

    assert outcome.allocation.allocated == 300
    assert outcome.allocation.leftover == 50
    assert [float(p.amount_paid) for p in office.payments.payments] == [100, 100, 100]
    [warning] = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert "Overpayment of 50.00 on sale 1" in warning.getMessage()
    assert warning.sale_id == 1


@pytest.mark.asyncio
async def test_odd_cent_amounts_write_no_empty_payments(make_office):
    due = TODAY + timedelta(days=5)
    office = make_office(sales=[make_sale(1)], installments=[
        make_installment(1, 1, 1, due, amount_due=100.1),
        make_installment(2, 1, 2, add_months(due, 1), amount_due=0.2),
        make_installment(3, 1, 3, add_months(due, 2), amount_due=50),
    ])
    service = office.installment_service()

    await service.record_payment(1, 100.3, today=TODAY)
    summary = await service.year_summary(TODAY.year)

    assert [p.installment_id for p in office.payments.payments] == [1, 2]
    assert office.installments.rows[3].status == "Unpaid"
    assert office.installments.writes == 2
    assert summary.total_num_payments == 2


@pytest.mark.asyncio
async def test_record_payment_rejects_non_positive_amount(office):
    with pytest.raises(ValidationError):
        await office.installment_service().record_payment(1, 0, today=TODAY)
    assert office.payments.payments == []


@pytest.mark.asyncio
async def test_record_payment_on_paid_installment_is_stale(office):
    office.installments.rows[1].amount_paid = 100
    office.installments.rows[1].status = "Paid"

    with pytest.raises(StaleDataError):
        await office.installment_service().record_payment(1, 100, today=TODAY)
    assert office.payments.payments == []


@pytest.mark.asyncio
async def test_record_payment_unknown_installment(office):
    with pytest.raises(EntityNotFoundError):
        await office.installment_service().record_payment(999, 100, today=TODAY)


@pytest.mark.asyncio
async def test_record_payment_requires_client(office):
    office.sales.sales[1].client_id = None

    with pytest.raises(ValidationError):
        await office.installment_service().record_payment(1, 100, today=TODAY)


@pytest.mark.asyncio
async def test_record_payment_notifies_scheduler(office):
    scheduler = MagicMock()

    await office.installment_service(scheduler=scheduler).record_payment(1, 50, today=TODAY)

    scheduler.notify.assert_called_once()


@pytest.mark.asyncio
async def test_record_payment_retries_the_fresh_read(office, monkeypatch):
    real = office.installments.get_by_id
    flaky = AsyncMock(side_effect=[OperationalError("SELECT", {}, Exception("gone away")), await real(1)])
    monkeypatch.setattr(office.installments, "get_by_id", flaky)

    outcome = await office.installment_service().record_payment(1, 100, today=TODAY)

    assert flaky.await_count == 2
    assert outcome.allocation.allocated == 100


@pytest.mark.asyncio
async def test_stack_overdue_twice_writes_once(make_office):
    office = make_office(
        sales=[make_sale(1)],
        installments=rows_for(1, 4, TODAY - timedelta(days=45), 1),
    )
    service = office.installment_service()

    first = await service.stack_overdue(today=TODAY)
    writes = office.installments.writes
    second = await service.stack_overdue(today=TODAY)

    assert first == 3
    assert second == 0
    assert office.installments.writes == writes
    assert float(office.installments.rows[3].stacked_amount) == 200


@pytest.mark.asyncio
async def test_payment_after_stacking_clears_the_stacked_row(make_office):
    office = make_office(
        sales=[make_sale(1)],
        installments=rows_for(1, 3, TODAY - timedelta(days=45), 1),
    )
    service = office.installment_service()
    await service.stack_overdue(today=TODAY)

    outcome = await service.record_payment(3, 300, today=TODAY)

    assert outcome.sale_status == "Completed"
    assert remaining_amount(office.installments.rows[3]) == 0


@pytest.mark.asyncio
async def test_list_installments_hides_unconfirmed_sales(make_office):
    confirmed = make_sale(1)
    unconfirmed = make_sale(2, status="Pending", big_advance_amount=0, company_fee_amount=None,
                            confirmed_by=None)
    office = make_office(
        sales=[confirmed, unconfirmed],
        installments=rows_for(1, 2, TODAY - timedelta(days=20), 1) + rows_for(2, 2, TODAY, 10),
    )

    pairs = await office.installment_service().list_installments(today=TODAY)
    late = await office.installment_service().list_installments(status="Late", today=TODAY)

    assert {i.sale_id for i, _ in pairs} == {1}
    assert [i.id for i, _ in late] == [1]


@pytest.mark.asyncio
async def test_suggested_payment(make_office):
    office = make_office(
        sales=[make_sale(1)],
        installments=rows_for(1, 3, TODAY - timedelta(days=40), 1),
    )

    installment, suggestion = await office.installment_service().suggested_payment(3, today=TODAY)

    assert installment.id == 3
    assert (suggestion.amount, suggestion.months) == (200, 2)


@pytest.fixture
def merge_office(make_office):
    start = TODAY - timedelta(days=45)
    sales = [
        make_sale(1, land_piece_ids=[10]),
        make_sale(2, land_piece_ids=[20, 21]),
    ]
    installments = (
        rows_for(1, 4, start, 1, paid=[100, 100])
        + rows_for(2, 4, start, 10, paid=[100, 100])
    )
    payments_office = make_office(sales=sales, installments=installments)
    return payments_office


@pytest.mark.asyncio
async def test_merge_sales_combines_schedules(merge_office):
    await merge_office.payments.create({
        "client_id": 1, "sale_id": 2, "amount_paid": 200, "payment_type": "Installment",
        "payment_date": TODAY,
    })
    before = sum(remaining_amount(r) for r in merge_office.installments.rows.values())

    sale = await merge_office.installment_service().merge_sales([1, 2])

    rows = await merge_office.installments.get_for_sale(1)
    assert sale.id == 1
    assert len(rows) == 4
    assert sum(remaining_amount(r) for r in rows) == pytest.approx(before)
    assert await merge_office.installments.get_for_sale(2) == []
    assert merge_office.sales.deleted == [2]
    assert sale.land_piece_ids == [10, 20, 21]
    assert float(sale.total_selling_price) == 120000
    assert sale.number_of_installments == 4
    assert all(p.sale_id == 1 for p in merge_office.payments.payments)
    assert merge_office.land_pieces.statuses == {10: "Sold", 20: "Sold", 21: "Sold"}


@pytest.mark.asyncio
async def test_merge_rejects_mismatched_sales(make_office):
    start = TODAY + timedelta(days=5)
    office = make_office(
        sales=[make_sale(1), make_sale(2)],
        installments=rows_for(1, 3, start, 1) + rows_for(2, 2, start, 10),
    )

    with pytest.raises(MergeError):
        await office.installment_service().merge_sales([1, 2])
    assert len(office.installments.rows) == 5


@pytest.mark.asyncio
async def test_merge_requires_two_sales(merge_office):
    with pytest.raises(MergeError):
        await merge_office.installment_service().merge_sales([1, 1])


@pytest.mark.asyncio
async def test_merge_unknown_sale(merge_office):
    with pytest.raises(EntityNotFoundError):
        await merge_office.installment_service().merge_sales([1, 42])


@pytest.mark.asyncio
async def test_merge_aborts_when_rows_cannot_be_deleted(merge_office, monkeypatch):
    monkeypatch.setattr(merge_office.installments, "delete_for_sales", AsyncMock())
    monkeypatch.setattr(merge_office.installments, "delete_by_ids", AsyncMock())
    merge_office.settings.MERGE_DELETE_ATTEMPTS = 3

    with pytest.raises(MergeError, match="manually"):
        await merge_office.installment_service().merge_sales([1, 2])

    assert merge_office.installments.delete_by_ids.await_count == 2
    assert merge_office.sales.deleted == []


@pytest.mark.asyncio
async def test_merge_retries_network_errors_while_deleting(merge_office, monkeypatch):
    real = merge_office.installments.delete_for_sales
    calls = []

    async def flaky(sale_ids):
        calls.append(sale_ids)
        if len(calls) == 1:
            raise OperationalError("DELETE", {}, Exception("lost connection"))
        await real(sale_ids)

    monkeypatch.setattr(merge_office.installments, "delete_for_sales", flaky)

    sale = await merge_office.installment_service().merge_sales([1, 2])

    assert len(calls) == 2
    assert sale.number_of_installments == 4


@pytest.mark.asyncio
async def test_find_mergeable(merge_office):
    groups = await merge_office.installment_service().find_mergeable()

    assert [[s.sale_id for s in group] for group in groups] == [[1, 2]]


@pytest.mark.asyncio
async def test_year_summary(office):
    service = office.installment_service()
    await service.record_payment(1, 150, today=TODAY)

    summary = await service.year_summary(TODAY.year)

    june = summary.monthly_summaries[TODAY.month - 1]
    assert summary.total_collected_amount == 150
    assert summary.total_num_payments == 2
    assert june.collected_amount == 150
    assert june.collected_percentage_of_year == 100
    assert summary.total_scheduled_amount == 300
