"""Script to seed test data into the database."""

from datetime import date, timedelta
import asyncio
from sqlalchemy import delete
from components.core.init_db import db_manager, get_db
from components.core.security import get_password_hash
from components.client.models import Client
from components.debt.models import Debt, DebtPayment
from components.installment.calculations import add_months, build_schedule
from components.installment.models import Installment
from components.land.models import LandPiece, LandStatus
from components.payment.models import Payment, PaymentRecordType
from components.sale.models import PaymentType, Sale, SaleStatus
from components.user import utils
from components.user.models import User, UserRole


async def seed_data():
    """Seed test data into the database."""
    await db_manager.create_all()
    async for db in get_db():
        # Clear existing data, children first
        for model in (Payment, Installment, Sale, LandPiece, Client, DebtPayment, Debt, User):
            await db.execute(delete(model))
        await db.commit()

        # Create users
        owner = User(
            login="owner",
            password=get_password_hash("password123"),
            name="Office Owner",
            role=UserRole.OWNER.value,
            registration_date=date(2024, 1, 1),
        )
        worker = User(
            login="worker",
            password=get_password_hash("password123"),
            name="Front Desk",
            role=UserRole.WORKER.value,
            permissions={utils.RECORD_PAYMENTS: True, utils.MANAGE_DEBTS: True},
            registration_date=date(2024, 1, 15),
        )
        db.add_all([owner, worker])
        await db.commit()

        # Create clients
        clients = [
            Client(name="Amine Benali", cin="AB123456", phone="0611111111", created_by=owner.id),
            Client(name="Salma Idrissi", cin="CD789012", phone="0622222222", created_by=owner.id),
        ]
        db.add_all(clients)
        await db.commit()

        # Create land pieces
        pieces = [
            LandPiece(
                land_batch="Batch A",
                piece_number=str(number),
                surface_area=200,
                purchase_cost=30000,
                selling_price_full=60000,
                selling_price_installment=66000,
            )
            for number in range(1, 5)
        ]
        db.add_all(pieces)
        await db.commit()

        # A confirmed installment sale with a year-long schedule
        start = add_months(date.today().replace(day=1), -3)
        sale = Sale(
            client_id=clients[0].id,
            land_piece_ids=[pieces[0].id],
            payment_type=PaymentType.INSTALLMENT.value,
            total_purchase_cost=30000,
            total_selling_price=66000,
            profit_margin=36000,
            small_advance_amount=5000,
            big_advance_amount=13000,
            company_fee_percentage=2,
            company_fee_amount=1320,
            installment_start_date=start,
            installment_end_date=add_months(start, 11),
            number_of_installments=12,
            monthly_installment_amount=4000,
            status=SaleStatus.INSTALLMENTS_ONGOING.value,
            sale_date=start - timedelta(days=10),
            created_by=owner.id,
            confirmed_by=owner.id,
        )
        db.add(sale)
        await db.commit()
        pieces[0].status = LandStatus.RESERVED.value

        db.add_all([Installment(**row) for row in build_schedule(sale.id, 12, 4000, start)])
        db.add_all([
            Payment(client_id=clients[0].id, sale_id=sale.id, amount_paid=5000,
                    payment_type=PaymentRecordType.SMALL_ADVANCE.value, payment_date=sale.sale_date,
                    recorded_by=owner.id),
            Payment(client_id=clients[0].id, sale_id=sale.id, amount_paid=13000,
                    payment_type=PaymentRecordType.BIG_ADVANCE.value, payment_date=start,
                    recorded_by=owner.id),
        ])

        # A reservation still waiting for confirmation
        pending = Sale(
            client_id=clients[1].id,
            land_piece_ids=[pieces[1].id, pieces[2].id],
            payment_type=PaymentType.FULL.value,
            total_purchase_cost=60000,
            total_selling_price=120000,
            profit_margin=60000,
            small_advance_amount=10000,
            status=SaleStatus.PENDING.value,
            sale_date=date.today(),
            created_by=worker.id,
        )
        db.add(pending)
        pieces[1].status = LandStatus.RESERVED.value
        pieces[2].status = LandStatus.RESERVED.value
        await db.commit()

        # Debts
        db.add_all([
            Debt(creditor_name="Cement supplier", amount_owed=15000, due_date=date.today() + timedelta(days=30),
                 check_number="0012345"),
            Debt(creditor_name="Surveyor", amount_owed=3000, due_date=date.today() - timedelta(days=5)),
        ])
        await db.commit()

    await db_manager.dispose()


if __name__ == "__main__":
    asyncio.run(seed_data())
