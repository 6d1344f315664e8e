from datetime import date

import pytest

from components.payment.models import Payment
from components.sale import calculations as calc
from tests.conftest import TODAY, make_installment, make_sale


def two_piece_sale(**overrides):
    values = dict(
        land_piece_ids=[10, 20],
        total_purchase_cost=60000,
        total_selling_price=120000,
        profit_margin=60000,
        small_advance_amount=10000,
        big_advance_amount=20000,
        monthly_installment_amount=4000,
    )
    values.update(overrides)
    return make_sale(1, **values)


def payment(amount, payment_type):
    return Payment(client_id=1, sale_id=1, amount_paid=amount, payment_type=payment_type,
                   payment_date=date(2024, 1, 1))


def test_piece_values_split_evenly():
    values = calc.piece_values(two_piece_sale())

    assert values.price == 60000
    assert values.cost == 30000
    assert values.profit == 30000
    assert values.reservation == 5000
    assert values.company_fee == 1200
    assert values.total_payable == 61200
    assert values.remaining_for_full == 56200


def test_piece_values_fee_override():
    values = calc.piece_values(two_piece_sale(), fee_percentage=5)

    assert values.company_fee == 3000
    assert values.fee_percentage == 5


def test_piece_values_default_fee_when_unset():
    values = calc.piece_values(make_sale(1, company_fee_percentage=None))

    assert values.fee_percentage == calc.DEFAULT_COMPANY_FEE_PERCENTAGE


def test_reduced_sale_values_drop_one_share():
    values = calc.reduced_sale_values(two_piece_sale(), 10)

    assert values["land_piece_ids"] == [20]
    assert values["total_selling_price"] == 60000
    assert values["small_advance_amount"] == 5000
    assert values["big_advance_amount"] == 10000
    assert values["monthly_installment_amount"] == 2000


def test_split_sale_values_carry_the_client():
    values = calc.split_sale_values(two_piece_sale(), 20, "Cancelled", "note")

    assert values["client_id"] == 1
    assert values["land_piece_ids"] == [20]
    assert values["status"] == "Cancelled"
    assert values["total_selling_price"] == 60000


@pytest.mark.parametrize("overrides, listed", [
    ({}, True),
    ({"status": "Cancelled"}, False),
    ({"status": "Completed", "confirmed_by": None, "big_advance_amount": 0, "company_fee_amount": None}, True),
    ({"status": "Pending", "confirmed_by": None, "big_advance_amount": 0, "company_fee_amount": None}, False),
    ({"status": "Pending", "confirmed_by": None, "big_advance_amount": 5000, "company_fee_amount": None}, True),
])
def test_is_listed_for_installments(overrides, listed):
    assert calc.is_listed_for_installments(make_sale(1, **overrides)) is listed


def test_display_status_pending_with_only_reservation():
    sale = make_sale(1, status="Pending", confirmed_by=None, big_advance_amount=0)

    status = calc.derive_display_status(sale, [], [payment(5000, "SmallAdvance")])

    assert status == "Pending"


def test_display_status_installments_ongoing():
    sale = make_sale(1, status="Pending", confirmed_by=None)
    rows = [make_installment(1, 1, 1, TODAY, status="Paid", amount_paid=100),
            make_installment(2, 1, 2, TODAY)]

    status = calc.derive_display_status(sale, rows, [payment(5000, "SmallAdvance"), payment(10000, "BigAdvance")])

    assert status == "InstallmentsOngoing"


def test_display_status_completed_when_every_row_is_cleared():
    sale = make_sale(1)
    rows = [make_installment(1, 1, 1, TODAY, status="Paid", amount_paid=100),
            make_installment(2, 1, 2, TODAY, amount_paid=100)]

    assert calc.derive_display_status(sale, rows, []) == "Completed"


def test_display_status_keeps_cancelled():
    sale = make_sale(1, status="Cancelled")
    assert calc.derive_display_status(sale, [], [payment(5000, "Full")]) == "Cancelled"


def test_display_status_promise_awaiting_payment():
    sale = make_sale(1, payment_type="PromiseOfSale", status="AwaitingPayment")
    assert calc.derive_display_status(sale, [], [payment(20000, "InitialPayment")]) == "AwaitingPayment"
