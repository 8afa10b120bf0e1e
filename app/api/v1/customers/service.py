import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.customers.schemas import (
    CreateCustomerRequest,
    CustomerDetailResponse,
    CustomerResponse,
    CustomerScheduleResponse,
    ScheduleEntryResponse,
    UpdateCustomerRequest,
)
from app.core.exceptions import AppException
from app.core.loan_schedule import build_installments
from app.core.utils import to_money
from app.models.customer import Customer
from app.models.enums import CustomerStatus, PaymentStatus
from app.models.payment import Payment
from app.models.payment_schedule import PaymentScheduleEntry


class CustomerService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def get_by_account_number(self, account_number: str) -> Optional[Customer]:
        result = await self.db.execute(select(Customer).where(Customer.account_number == account_number))
        return result.scalars().first()

    async def get_customer_or_404(self, account_number: str) -> Customer:
        customer = await self.get_by_account_number(account_number)
        if not customer:
            AppException().raise_404("Customer not found")
        return customer

    async def list_active_customers(self, limit: int = 50, offset: int = 0) -> List[Customer]:
        """Active customers, newest first."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.status == CustomerStatus.active.value)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_customer_detail(self, account_number: str) -> CustomerDetailResponse:
        """
        Customer record plus count and sum of its SUCCESS payments.
        last_payment_date is the latest payment of any status.
        """
        customer = await self.get_customer_or_404(account_number)
        result = await self.db.execute(
            select(
                func.count(Payment.id).label("total_payments"),
                func.coalesce(func.sum(Payment.payment_amount), 0).label("total_paid"),
            ).where(
                Payment.customer_id == customer.id,
                Payment.status == PaymentStatus.success.value,
            )
        )
        row = result.one()
        last_payment_date = await self.db.scalar(
            select(func.max(Payment.payment_date)).where(Payment.customer_id == customer.id)
        )
        return CustomerDetailResponse(
            **CustomerResponse.model_validate(customer).model_dump(),
            total_payments=row.total_payments or 0,
            total_paid=to_money(row.total_paid),
            last_payment_date=last_payment_date,
        )

    async def create_customer(self, data: CreateCustomerRequest) -> Customer:
        # Validate unique fields before creating the customer
        existing_account = await self.db.execute(
            select(Customer.id).where(Customer.account_number == data.account_number)
        )
        if existing_account.scalar_one_or_none() is not None:
            AppException().raise_409(f"Customer with account number {data.account_number} already exists")

        if data.email:
            existing_email = await self.db.execute(select(Customer.id).where(Customer.email == data.email))
            if existing_email.scalar_one_or_none() is not None:
                AppException().raise_409(f"Customer with email {data.email} already exists")

        customer = Customer(
            account_number=data.account_number,
            customer_name=data.customer_name,
            email=data.email,
            phone=data.phone,
            issue_date=data.issue_date,
            interest_rate=data.interest_rate,
            tenure=data.tenure,
            emi_due=to_money(data.emi_due),
            loan_amount=to_money(data.loan_amount) if data.loan_amount is not None else None,
            outstanding_balance=to_money(data.outstanding_balance),
            status=CustomerStatus.active.value,
        )
        self.db.add(customer)
        await self.db.flush()

        if data.generate_schedule:
            for due_date, due_amount in build_installments(data.issue_date, data.tenure, data.emi_due):
                self.db.add(PaymentScheduleEntry(customer_id=customer.id, due_date=due_date, due_amount=due_amount))

        await self.db.commit()
        await self.db.refresh(customer)
        self.logger.info(
            "Customer created: account_number=%s outstanding_balance=%s schedule=%s",
            customer.account_number,
            customer.outstanding_balance,
            data.generate_schedule,
        )
        return customer

    async def update_customer(self, account_number: str, data: UpdateCustomerRequest) -> Customer:
        """Apply the provided fields. The balance is not editable here."""
        customer = await self.get_customer_or_404(account_number)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        new_email = update_data.get("email")
        if new_email and new_email != customer.email:
            existing_email = await self.db.execute(
                select(Customer.id).where(Customer.email == new_email, Customer.id != customer.id)
            )
            if existing_email.scalar_one_or_none() is not None:
                AppException().raise_409(f"Customer with email {new_email} already exists")

        for field, value in update_data.items():
            if field == "status":
                value = value.value
            elif field == "emi_due":
                value = to_money(value)
            setattr(customer, field, value)

        await self.db.commit()
        await self.db.refresh(customer)
        self.logger.info("Customer updated: account_number=%s fields=%s", account_number, sorted(update_data))
        return customer

    async def get_schedule(self, account_number: str) -> CustomerScheduleResponse:
        customer = await self.get_customer_or_404(account_number)
        result = await self.db.execute(
            select(PaymentScheduleEntry)
            .where(PaymentScheduleEntry.customer_id == customer.id)
            .order_by(PaymentScheduleEntry.due_date.asc(), PaymentScheduleEntry.id.asc())
        )
        return CustomerScheduleResponse(
            account_number=customer.account_number,
            customer_name=customer.customer_name,
            entries=[ScheduleEntryResponse.model_validate(e) for e in result.scalars().all()],
        )
