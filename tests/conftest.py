from collections import defaultdict
from datetime import date
from itertools import count

import pytest

from components.core.config import Settings
from components.installment.models import Installment
from components.installment.service import InstallmentService
from components.payment.models import Payment
from components.sale.models import Sale
from components.sale.service import SaleService
from components.user.models import User

TODAY = date(2024, 6, 15)


def make_sale(id, client_id=1, **overrides):
    values = dict(
        id=id,
        client_id=client_id,
        land_piece_ids=[id * 10],
        payment_type="Installment",
        total_purchase_cost=30000,
        total_selling_price=60000,
        profit_margin=30000,
        small_advance_amount=5000,
        big_advance_amount=10000,
        company_fee_percentage=2,
        company_fee_amount=1200,
        installment_start_date=None,
        installment_end_date=None,
        number_of_installments=None,
        monthly_installment_amount=None,
        promise_initial_payment=None,
        promise_completion_date=None,
        promise_completed=False,
        status="InstallmentsOngoing",
        sale_date=date(2024, 1, 1),
        deadline_date=None,
        notes=None,
        created_by=1,
        confirmed_by=1,
    )
    values.update(overrides)
    return Sale(**values)


def make_user(id=1, role="Owner", status="Active", permissions=None):
    return User(
        id=id,
        login=f"user{id}",
        password="salt:hash",
        name="Test User",
        role=role,
        status=status,
        permissions=permissions or {},
        registration_date=date(2024, 1, 1),
    )


def make_installment(id, sale_id, number, due_date, amount_due=100, amount_paid=0,
                     stacked_amount=0, status="Unpaid"):
    return Installment(
        id=id,
        sale_id=sale_id,
        installment_number=number,
        amount_due=amount_due,
        amount_paid=amount_paid,
        stacked_amount=stacked_amount,
        due_date=due_date,
        paid_date=None,
        status=status,
        notes=None,
    )


class FakeSaleRepository:
    def __init__(self, sales=()):
        self.sales = {s.id: s for s in sales}
        self._ids = count(1000)
        self.deleted = []

    async def get_by_id(self, sale_id):
        return self.sales.get(sale_id)

    async def get_many(self, sale_ids):
        return [self.sales[i] for i in sale_ids if i in self.sales]

    async def get_for_client(self, client_id):
        return [s for s in self.sales.values() if s.client_id == client_id]

    async def get_installment_sales(self):
        return [
            s for s in self.sales.values()
            if s.payment_type == "Installment" and s.status not in ("Cancelled", "Completed")
        ]

    async def create(self, values):
        sale = Sale(id=next(self._ids), **values)
        self.sales[sale.id] = sale
        return sale

    async def update(self, sale_id, values):
        sale = self.sales[sale_id]
        for key, value in values.items():
            setattr(sale, key, value)
        return sale

    async def delete(self, sale_id):
        self.deleted.append(sale_id)
        self.sales.pop(sale_id, None)


class FakeInstallmentRepository:
    def __init__(self, sales, rows=()):
        self.sales = sales
        self.rows = {r.id: r for r in rows}
        self._ids = count(5000)
        self.writes = 0

    def _ordered(self, rows):
        return sorted(rows, key=lambda r: (r.sale_id, r.installment_number))

    async def get_by_id(self, installment_id):
        return self.rows.get(installment_id)

    async def get_for_sale(self, sale_id):
        return self._ordered(r for r in self.rows.values() if r.sale_id == sale_id)

    async def get_for_sales(self, sale_ids):
        return self._ordered(r for r in self.rows.values() if r.sale_id in sale_ids)

    async def get_with_sales(self, sale_id=None):
        pairs = []
        for row in sorted(self.rows.values(), key=lambda r: (r.due_date, r.sale_id, r.installment_number)):
            sale = self.sales.sales.get(row.sale_id)
            if sale is None or sale.status == "Cancelled":
                continue
            if sale_id is not None and row.sale_id != sale_id:
                continue
            pairs.append((row, sale))
        return pairs

    async def get_active(self):
        return [row for row, _ in await self.get_with_sales()]

    async def list_ids_for_sales(self, sale_ids):
        return [r.id for r in self.rows.values() if r.sale_id in sale_ids]

    async def update(self, installment_id, values):
        self.writes += 1
        row = self.rows[installment_id]
        for key, value in values.items():
            setattr(row, key, value)

    async def create_many(self, rows):
        created = []
        for values in rows:
            row = Installment(id=next(self._ids), **values)
            self.rows[row.id] = row
            created.append(row)
        return created

    async def delete_for_sales(self, sale_ids):
        self.rows = {i: r for i, r in self.rows.items() if r.sale_id not in sale_ids}

    async def delete_by_ids(self, installment_ids):
        self.rows = {i: r for i, r in self.rows.items() if i not in installment_ids}

    async def scheduled_by_month(self, year):
        totals = defaultdict(float)
        for row in self.rows.values():
            if row.due_date.year == year:
                totals[row.due_date.month] += float(row.amount_due)
        return dict(totals)


class FakePaymentRepository:
    def __init__(self, payments=()):
        self.payments = list(payments)
        self._ids = count(9000)

    async def create(self, values):
        payment = Payment(id=next(self._ids), **values)
        self.payments.append(payment)
        return payment

    async def get_for_sale(self, sale_id):
        return [p for p in self.payments if p.sale_id == sale_id]

    async def reassign_sale(self, from_sale_ids, to_sale_id):
        for payment in self.payments:
            if payment.sale_id in from_sale_ids:
                payment.sale_id = to_sale_id

    async def collected_by_month(self, year):
        totals = {}
        for p in self.payments:
            if p.payment_type == "Installment" and p.payment_date.year == year:
                amount, n = totals.get(p.payment_date.month, (0.0, 0))
                totals[p.payment_date.month] = (amount + float(p.amount_paid), n + 1)
        return totals


class FakeLandPieceRepository:
    def __init__(self):
        self.statuses = {}

    async def set_status(self, piece_ids, status):
        for piece_id in piece_ids:
            self.statuses[piece_id] = status


class Office:
    """A set of fake repositories shared by the services under test."""

    def __init__(self, sales=(), installments=(), payments=()):
        self.sales = FakeSaleRepository(sales)
        self.installments = FakeInstallmentRepository(self.sales, installments)
        self.payments = FakePaymentRepository(payments)
        self.land_pieces = FakeLandPieceRepository()
        self.settings = Settings(MERGE_RETRY_DELAY_SECONDS=0, NETWORK_RETRY_DELAY_SECONDS=0)

    def installment_service(self, scheduler=None):
        return InstallmentService(
            self.installments, self.payments, self.sales, self.land_pieces,
            scheduler=scheduler, settings=self.settings,
        )

    def sale_service(self):
        return SaleService(
            self.sales, self.installments, self.payments, self.land_pieces, settings=self.settings,
        )


@pytest.fixture
def make_office():
    return Office
