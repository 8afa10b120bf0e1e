"""
Tests for PaymentPoster

Covers:
- balance decrement and payment insert committed together
- conservation of balance across several postings
- concurrent postings on one customer
- rollback on every failure path
- reference collision retry and exhaustion
- installment selection (earliest due PENDING row)
"""
import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    CustomerNotFoundError,
    DuplicatePaymentReferenceError,
    InsufficientBalanceError,
    PaymentPostingError,
)
from app.core.payment_poster import PaymentPoster
from app.models.customer import Customer
from app.models.enums import PaymentMethod, PaymentStatus, ScheduleStatus
from app.models.payment import Payment
from app.models.payment_schedule import PaymentScheduleEntry


async def _balance(database, customer_id: int) -> Decimal:
    async with database.session_maker() as session:
        return await session.scalar(select(Customer.outstanding_balance).where(Customer.id == customer_id))


async def _payment_count(database, customer_id: int | None = None) -> int:
    query = select(func.count(Payment.id))
    if customer_id is not None:
        query = query.where(Payment.customer_id == customer_id)
    async with database.session_maker() as session:
        return await session.scalar(query)


async def _post(database, customer_id: int, amount: str, **kwargs) -> Payment:
    async with database.session_maker() as session:
        poster = PaymentPoster(session, **kwargs.pop("poster_kwargs", {}))
        return await poster.post_payment(
            customer_id=customer_id,
            account_number=kwargs.pop("account_number", "ACC001"),
            amount=Decimal(amount),
            **kwargs,
        )


class TestPostPaymentSuccess:
    """Successful postings"""

    @pytest.mark.asyncio
    async def test_post_lowers_balance_and_records_payment(self, database, customer_factory):
        customer_id = await customer_factory()

        payment = await _post(database, customer_id, "5000.00", payment_method=PaymentMethod.card, remarks="EMI")

        assert payment.id is not None
        assert payment.status == PaymentStatus.success.value
        assert payment.payment_method == PaymentMethod.card.value
        assert payment.payment_amount == Decimal("5000.00")
        assert payment.remarks == "EMI"
        assert payment.payment_reference_id.startswith("PAY-")
        assert await _balance(database, customer_id) == Decimal("145000.00")
        assert await _payment_count(database, customer_id) == 1

    @pytest.mark.asyncio
    async def test_committed_posting_visible_to_new_session(self, database, customer_factory):
        """Balance and payment row are readable right after the call returns"""
        customer_id = await customer_factory()
        payment = await _post(database, customer_id, "2500.00")

        async with database.session_maker() as session:
            stored = await session.scalar(
                select(Payment).where(Payment.payment_reference_id == payment.payment_reference_id)
            )
            balance = await session.scalar(select(Customer.outstanding_balance).where(Customer.id == customer_id))

        assert stored is not None
        assert stored.payment_amount == Decimal("2500.00")
        assert balance == Decimal("147500.00")

    @pytest.mark.asyncio
    async def test_balance_conservation_across_postings(self, database, customer_factory):
        customer_id = await customer_factory()
        amounts = ["5000.50", "1234.99", "0.50"]

        for amount in amounts:
            await _post(database, customer_id, amount)

        async with database.session_maker() as session:
            total_paid = await session.scalar(
                select(func.sum(Payment.payment_amount)).where(
                    Payment.customer_id == customer_id, Payment.status == PaymentStatus.success.value
                )
            )

        assert await _balance(database, customer_id) == Decimal("143764.01")
        assert Decimal(str(total_paid)).quantize(Decimal("0.01")) == Decimal("6235.99")

    @pytest.mark.asyncio
    async def test_exact_balance_clears_account(self, database, customer_factory):
        customer_id = await customer_factory(outstanding_balance="1000.00")

        await _post(database, customer_id, "1000.00")

        assert await _balance(database, customer_id) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_concurrent_postings_lose_no_update(self, database, customer_factory):
        customer_id = await customer_factory(outstanding_balance="10000.00")

        payments = await asyncio.gather(*(_post(database, customer_id, "100.00") for _ in range(10)))

        assert len({p.payment_reference_id for p in payments}) == 10
        assert await _balance(database, customer_id) == Decimal("9000.00")
        assert await _payment_count(database, customer_id) == 10

    @pytest.mark.asyncio
    async def test_concurrent_postings_never_overdraw(self, database, customer_factory):
        """Only as many postings succeed as the balance covers"""
        customer_id = await customer_factory(outstanding_balance="300.00")

        results = await asyncio.gather(
            *(_post(database, customer_id, "100.00") for _ in range(5)), return_exceptions=True
        )

        succeeded = [r for r in results if isinstance(r, Payment)]
        rejected = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(succeeded) == 3
        assert len(rejected) == 2
        assert await _balance(database, customer_id) == Decimal("0.00")
        assert await _payment_count(database, customer_id) == 3


class TestPostPaymentFailures:
    """Failure paths leave no trace"""

    @pytest.mark.asyncio
    async def test_insufficient_balance_rejected(self, database, customer_factory):
        customer_id = await customer_factory(outstanding_balance="100.00")

        with pytest.raises(InsufficientBalanceError):
            await _post(database, customer_id, "100.01")

        assert await _balance(database, customer_id) == Decimal("100.00")
        assert await _payment_count(database, customer_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_customer(self, database):
        with pytest.raises(CustomerNotFoundError):
            await _post(database, 9999, "10.00")

        assert await _payment_count(database) == 0

    @pytest.mark.asyncio
    async def test_storage_error_after_insert_rolls_back_everything(self, database, customer_factory, monkeypatch):
        customer_id = await customer_factory(with_schedule=True)

        async def failing_schedule(self, customer_id, amount):
            raise OperationalError("UPDATE payment_schedule", {}, Exception("disk I/O error"))

        monkeypatch.setattr(PaymentPoster, "_apply_to_schedule", failing_schedule)

        with pytest.raises(PaymentPostingError) as exc_info:
            await _post(database, customer_id, "5000.00")

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert await _balance(database, customer_id) == Decimal("150000.00")
        assert await _payment_count(database, customer_id) == 0

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back_applied_schedule_update(self, database, customer_factory, monkeypatch):
        """Decrement, insert and installment update all ran; a failing commit undoes all three"""
        customer_id = await customer_factory(with_schedule=True, tenure=2)

        async with database.session_maker() as session:
            async def failing_commit():
                raise OperationalError("COMMIT", {}, Exception("database is locked"))

            monkeypatch.setattr(session, "commit", failing_commit)
            poster = PaymentPoster(session)
            with pytest.raises(PaymentPostingError):
                await poster.post_payment(customer_id=customer_id, account_number="ACC001", amount=Decimal("5000.00"))

        async with database.session_maker() as session:
            entries = (
                await session.execute(
                    select(PaymentScheduleEntry)
                    .where(PaymentScheduleEntry.customer_id == customer_id)
                    .order_by(PaymentScheduleEntry.due_date)
                )
            ).scalars().all()

        assert [e.status for e in entries] == [ScheduleStatus.pending.value, ScheduleStatus.pending.value]
        assert all(e.paid_amount == Decimal("0.00") for e in entries)
        assert await _balance(database, customer_id) == Decimal("150000.00")
        assert await _payment_count(database, customer_id) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["10.005", "0.001", "0", "-5.00"])
    async def test_amount_is_rejected_not_rounded(self, database, customer_factory, amount):
        customer_id = await customer_factory()

        with pytest.raises(ValueError):
            await _post(database, customer_id, amount)

        assert await _balance(database, customer_id) == Decimal("150000.00")
        assert await _payment_count(database, customer_id) == 0

    @pytest.mark.asyncio
    async def test_trailing_zeros_are_accepted(self, database, customer_factory):
        customer_id = await customer_factory()

        payment = await _post(database, customer_id, "10.000")

        assert payment.payment_amount == Decimal("10.00")
        assert await _balance(database, customer_id) == Decimal("149990.00")

    @pytest.mark.asyncio
    async def test_failed_posting_does_not_affect_next_one(self, database, customer_factory):
        customer_id = await customer_factory(outstanding_balance="500.00")

        with pytest.raises(InsufficientBalanceError):
            await _post(database, customer_id, "600.00")
        await _post(database, customer_id, "200.00")

        assert await _balance(database, customer_id) == Decimal("300.00")
        assert await _payment_count(database, customer_id) == 1

    @pytest.mark.asyncio
    async def test_failure_on_one_customer_leaves_other_untouched(self, database, customer_factory):
        short_id = await customer_factory(account_number="ACC001", outstanding_balance="50.00")
        funded_id = await customer_factory(account_number="ACC002", outstanding_balance="5000.00")

        failed, posted = await asyncio.gather(
            _post(database, short_id, "100.00", account_number="ACC001"),
            _post(database, funded_id, "100.00", account_number="ACC002"),
            return_exceptions=True,
        )

        assert isinstance(failed, InsufficientBalanceError)
        assert isinstance(posted, Payment)
        assert await _balance(database, short_id) == Decimal("50.00")
        assert await _balance(database, funded_id) == Decimal("4900.00")
        assert await _payment_count(database, short_id) == 0
        assert await _payment_count(database, funded_id) == 1


class TestPaymentReferences:
    """Reference collisions on the unique index"""

    @pytest.mark.asyncio
    async def test_collision_is_retried_with_fresh_reference(self, database, customer_factory):
        customer_id = await customer_factory()
        await _post(database, customer_id, "10.00", poster_kwargs={"reference_factory": lambda: "PAY-FIXED-0001"})

        references = iter(["PAY-FIXED-0001", "PAY-FIXED-0002"])
        payment = await _post(
            database, customer_id, "20.00", poster_kwargs={"reference_factory": lambda: next(references)}
        )

        assert payment.payment_reference_id == "PAY-FIXED-0002"
        assert await _balance(database, customer_id) == Decimal("149970.00")
        assert await _payment_count(database, customer_id) == 2

    @pytest.mark.asyncio
    async def test_exhausted_attempts_roll_back(self, database, customer_factory):
        customer_id = await customer_factory()
        await _post(database, customer_id, "10.00", poster_kwargs={"reference_factory": lambda: "PAY-TAKEN"})

        with pytest.raises(DuplicatePaymentReferenceError):
            await _post(
                database,
                customer_id,
                "20.00",
                poster_kwargs={"reference_factory": lambda: "PAY-TAKEN", "max_reference_attempts": 3},
            )

        assert await _balance(database, customer_id) == Decimal("149990.00")
        assert await _payment_count(database, customer_id) == 1

    @pytest.mark.asyncio
    async def test_explicit_attempt_bound_is_honoured(self, database, customer_factory):
        """An explicit 0 is not replaced by the configured default"""
        customer_id = await customer_factory()

        async with database.session_maker() as session:
            assert PaymentPoster(session, max_reference_attempts=0).max_reference_attempts == 0
            assert PaymentPoster(session).max_reference_attempts == 3

        with pytest.raises(DuplicatePaymentReferenceError):
            await _post(database, customer_id, "20.00", poster_kwargs={"max_reference_attempts": 0})

        assert await _balance(database, customer_id) == Decimal("150000.00")
        assert await _payment_count(database, customer_id) == 0


class TestScheduleUpdate:
    """Installment marked PAID by a posting"""

    @pytest.mark.asyncio
    async def test_earliest_pending_installment_marked_paid(self, database, customer_factory):
        customer_id = await customer_factory(with_schedule=True, tenure=3)

        await _post(database, customer_id, "5000.00")

        async with database.session_maker() as session:
            entries = (
                await session.execute(
                    select(PaymentScheduleEntry)
                    .where(PaymentScheduleEntry.customer_id == customer_id)
                    .order_by(PaymentScheduleEntry.due_date)
                )
            ).scalars().all()

        assert [e.status for e in entries] == [
            ScheduleStatus.paid.value,
            ScheduleStatus.pending.value,
            ScheduleStatus.pending.value,
        ]
        assert entries[0].paid_amount == Decimal("5000.00")
        assert entries[1].paid_amount == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_selection_follows_due_date_not_insert_order(self, database, customer_factory):
        customer_id = await customer_factory()
        async with database.session_maker() as session:
            later = PaymentScheduleEntry(customer_id=customer_id, due_date=date(2024, 3, 15), due_amount=Decimal("5000"))
            earlier = PaymentScheduleEntry(customer_id=customer_id, due_date=date(2024, 2, 15), due_amount=Decimal("5000"))
            session.add(later)
            await session.flush()
            session.add(earlier)
            await session.commit()
            earlier_id, later_id = earlier.id, later.id

        await _post(database, customer_id, "5000.00")

        async with database.session_maker() as session:
            statuses = dict(
                (await session.execute(select(PaymentScheduleEntry.id, PaymentScheduleEntry.status))).all()
            )

        assert statuses[earlier_id] == ScheduleStatus.paid.value
        assert statuses[later_id] == ScheduleStatus.pending.value

    @pytest.mark.asyncio
    async def test_posting_without_schedule_succeeds(self, database, customer_factory):
        customer_id = await customer_factory(with_schedule=False)

        payment = await _post(database, customer_id, "750.00")

        assert payment.status == PaymentStatus.success.value
        assert await _balance(database, customer_id) == Decimal("149250.00")
