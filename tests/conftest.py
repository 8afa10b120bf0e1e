"""
Shared fixtures: a file-backed SQLite database per test, sessions on it and an
HTTP client bound to the FastAPI app.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./payment_collection_test.db")

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.database import Database
from app.core.loan_schedule import build_installments
from app.main import app
from app.models.customer import Customer
from app.models.enums import CustomerStatus
from app.models.payment_schedule import PaymentScheduleEntry


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(database):
    app.state.database = database
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_customer(
    database: Database,
    account_number: str = "ACC001",
    outstanding_balance: str = "150000.00",
    emi_due: str = "5000.00",
    tenure: int = 36,
    with_schedule: bool = False,
    status: str = CustomerStatus.active.value,
    email: str | None = None,
) -> int:
    """Insert a customer (optionally with its schedule) and return its id."""
    async with database.session_maker() as session:
        customer = Customer(
            account_number=account_number,
            customer_name=f"Customer {account_number}",
            email=email,
            phone="9876543210",
            issue_date=date(2023, 1, 15),
            interest_rate=Decimal("8.50"),
            tenure=tenure,
            emi_due=Decimal(emi_due),
            loan_amount=Decimal("180000.00"),
            outstanding_balance=Decimal(outstanding_balance),
            status=status,
        )
        session.add(customer)
        await session.flush()
        if with_schedule:
            for due_date, due_amount in build_installments(customer.issue_date, tenure, Decimal(emi_due)):
                session.add(PaymentScheduleEntry(customer_id=customer.id, due_date=due_date, due_amount=due_amount))
        await session.commit()
        return customer.id


@pytest.fixture
def customer_factory(database):
    async def _create(**kwargs) -> int:
        return await create_customer(database, **kwargs)

    return _create
