"""
Payment posting: record a payment and lower the customer's outstanding balance
as a single database transaction.

Effects of one posting, all committed together or not at all:
  1. the customer's outstanding balance drops by the amount (guarded so it never goes negative),
  2. a SUCCESS payment row is inserted under a fresh reference,
  3. the earliest PENDING installment of the customer, if any, is marked PAID.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    CustomerNotFoundError,
    DuplicatePaymentReferenceError,
    InsufficientBalanceError,
    PaymentPostingError,
)
from app.core.utils import generate_payment_reference, to_money
from app.models.customer import Customer
from app.models.enums import PaymentMethod, PaymentStatus, ScheduleStatus
from app.models.payment import Payment
from app.models.payment_schedule import PaymentScheduleEntry

logger = logging.getLogger(__name__)


def _is_reference_collision(exc: IntegrityError) -> bool:
    """True when the violated constraint is the unique index on payment_reference_id."""
    return "payment_reference_id" in str(exc.orig)


def _validated_amount(amount: Decimal) -> Decimal:
    exact = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    money = to_money(exact)
    if money != exact:
        raise ValueError(f"Payment amount {amount} has more than two decimal places")
    if money <= 0:
        raise ValueError(f"Payment amount must be positive, got {amount}")
    return money


class PaymentPoster:
    def __init__(
        self,
        db: AsyncSession,
        reference_factory: Callable[[], str] = generate_payment_reference,
        max_reference_attempts: int | None = None,
    ):
        self.db = db
        self.reference_factory = reference_factory
        if max_reference_attempts is None:
            max_reference_attempts = settings.PAYMENT_REFERENCE_MAX_ATTEMPTS
        self.max_reference_attempts = max_reference_attempts

    async def post_payment(
        self,
        customer_id: int,
        account_number: str,
        amount: Decimal,
        payment_method: PaymentMethod | str = PaymentMethod.upi,
        transaction_id: str | None = None,
        remarks: str | None = None,
    ) -> Payment:
        """
        Post a payment in the session's current transaction and commit it.

        Raises CustomerNotFoundError or InsufficientBalanceError when the guarded
        decrement matches no row, PaymentPostingError (chained) on storage errors.
        The transaction is rolled back on every failure. Amounts must be positive
        with at most two decimal places; anything else raises ValueError before any write.
        """
        amount = _validated_amount(amount)
        method = PaymentMethod(payment_method).value

        try:
            await self._decrement_balance(customer_id, amount)
            payment = await self._insert_payment(
                customer_id=customer_id,
                account_number=account_number,
                amount=amount,
                payment_method=method,
                transaction_id=transaction_id,
                remarks=remarks,
            )
            await self._apply_to_schedule(customer_id, amount)
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.warning(
                "Payment posting rolled back: customer_id=%s account=%s amount=%s error=%s",
                customer_id,
                account_number,
                amount,
                exc,
            )
            if isinstance(exc, SQLAlchemyError):
                raise PaymentPostingError(f"Error creating payment: {exc}") from exc
            raise

        logger.info(
            "Payment posted: reference=%s account=%s amount=%s method=%s",
            payment.payment_reference_id,
            account_number,
            amount,
            method,
        )
        return payment

    async def _decrement_balance(self, customer_id: int, amount: Decimal) -> None:
        # Relative update evaluated by the database: concurrent postings for one
        # customer serialize on the row and none of them is lost.
        result = await self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id, Customer.outstanding_balance >= amount)
            .values(outstanding_balance=Customer.outstanding_balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        existing = await self.db.scalar(select(Customer.id).where(Customer.id == customer_id))
        if existing is None:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        raise InsufficientBalanceError("Payment amount exceeds outstanding balance")

    async def _insert_payment(
        self,
        customer_id: int,
        account_number: str,
        amount: Decimal,
        payment_method: str,
        transaction_id: str | None,
        remarks: str | None,
    ) -> Payment:
        for attempt in range(1, self.max_reference_attempts + 1):
            reference = self.reference_factory()
            payment = Payment(
                payment_reference_id=reference,
                customer_id=customer_id,
                account_number=account_number,
                payment_date=datetime.utcnow(),
                payment_amount=amount,
                status=PaymentStatus.success.value,
                payment_method=payment_method,
                transaction_id=transaction_id,
                remarks=remarks,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(payment)
            except IntegrityError as exc:
                if not _is_reference_collision(exc):
                    raise
                logger.warning(
                    "Payment reference collision: reference=%s attempt=%s/%s",
                    reference,
                    attempt,
                    self.max_reference_attempts,
                )
                continue
            return payment
        raise DuplicatePaymentReferenceError(
            f"Could not generate a unique payment reference after {self.max_reference_attempts} attempts"
        )

    async def _apply_to_schedule(self, customer_id: int, amount: Decimal) -> int | None:
        """Mark the earliest PENDING installment PAID and return its id. No pending installment is not an error."""
        entry_id = await self.db.scalar(
            select(PaymentScheduleEntry.id)
            .where(
                PaymentScheduleEntry.customer_id == customer_id,
                PaymentScheduleEntry.status == ScheduleStatus.pending.value,
            )
            .order_by(PaymentScheduleEntry.due_date.asc(), PaymentScheduleEntry.id.asc())
            .limit(1)
            .with_for_update()
        )
        if entry_id is None:
            return None
        await self.db.execute(
            update(PaymentScheduleEntry)
            .where(PaymentScheduleEntry.id == entry_id)
            .values(
                paid_amount=PaymentScheduleEntry.paid_amount + amount,
                status=ScheduleStatus.paid.value,
            )
            .execution_options(synchronize_session=False)
        )
        return entry_id
