"""
Startup utilities for the application.
"""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func, text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.core.database import Database
from app.core.loan_schedule import build_installments
from app.models.customer import Customer
from app.models.enums import CustomerStatus
from app.models.payment_schedule import PaymentScheduleEntry

logger = logging.getLogger(__name__)

SAMPLE_CUSTOMERS = [
    {
        "account_number": "ACC001",
        "customer_name": "Rahul Kumar",
        "email": "rahul@example.com",
        "phone": "9876543210",
        "issue_date": date(2023, 1, 15),
        "interest_rate": Decimal("8.50"),
        "tenure": 36,
        "emi_due": Decimal("5000.00"),
        "loan_amount": Decimal("180000.00"),
        "outstanding_balance": Decimal("150000.00"),
    },
    {
        "account_number": "ACC002",
        "customer_name": "Priya Singh",
        "email": "priya@example.com",
        "phone": "9876543211",
        "issue_date": date(2023, 2, 20),
        "interest_rate": Decimal("9.00"),
        "tenure": 48,
        "emi_due": Decimal("4500.00"),
        "loan_amount": Decimal("216000.00"),
        "outstanding_balance": Decimal("195000.00"),
    },
    {
        "account_number": "ACC003",
        "customer_name": "Amit Patel",
        "email": "amit@example.com",
        "phone": "9876543212",
        "issue_date": date(2023, 3, 10),
        "interest_rate": Decimal("8.75"),
        "tenure": 36,
        "emi_due": Decimal("5500.00"),
        "loan_amount": Decimal("198000.00"),
        "outstanding_balance": Decimal("165000.00"),
    },
]


async def ensure_tables(database: Database) -> None:
    """Create missing tables. Development convenience; production runs 'alembic upgrade head'."""
    await database.create_all()
    logger.info("Database tables ensured")


async def customers_table_exists(session) -> bool:
    """Check if customers table exists."""
    try:
        await session.execute(text("SELECT 1 FROM customers LIMIT 1"))
        return True
    except (ProgrammingError, OperationalError):
        logger.warning("Customers table not found. Please run 'alembic upgrade head' to create it.")
        await session.rollback()
        return False


async def ensure_sample_customers(database: Database) -> int:
    """
    Seed the sample accounts (ACC001..ACC003) with their installment schedules
    when the customers table is empty. Returns the number of customers created.
    """
    async with database.session_maker() as session:
        try:
            if not await customers_table_exists(session):
                return 0

            result = await session.execute(select(func.count(Customer.id)))
            customer_count = result.scalar() or 0
            if customer_count > 0:
                logger.info(f"Found {customer_count} customer(s) in database. Skipping sample data.")
                return 0

            for data in SAMPLE_CUSTOMERS:
                customer = Customer(status=CustomerStatus.active.value, **data)
                session.add(customer)
                await session.flush()
                for due_date, due_amount in build_installments(data["issue_date"], data["tenure"], data["emi_due"]):
                    session.add(
                        PaymentScheduleEntry(customer_id=customer.id, due_date=due_date, due_amount=due_amount)
                    )
            await session.commit()
            logger.info(f"Seeded {len(SAMPLE_CUSTOMERS)} sample customers")
            return len(SAMPLE_CUSTOMERS)
        except (OperationalError, ProgrammingError) as e:
            await session.rollback()
            logger.warning(
                f"Database error while seeding sample data. Error: {e}. "
                f"Please ensure database is accessible and migrations are run."
            )
            return 0
