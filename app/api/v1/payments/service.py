import io
import logging
from datetime import datetime, time, timedelta

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.payments.schemas import (
    AccountPaymentsResponse,
    CustomerBalance,
    HistoryCustomer,
    HistoryTransaction,
    PaginationMeta,
    PaymentFilters,
    PaymentHistoryResponse,
    PaymentListItem,
    PaymentListResponse,
    PaymentRecord,
    PaymentStatistics,
    PostPaymentRequest,
    PostPaymentResponse,
)
from app.core.exceptions import AppException, CustomerNotFoundError, InsufficientBalanceError
from app.core.payment_poster import PaymentPoster
from app.core.utils import to_money
from app.models.customer import Customer
from app.models.enums import PaymentStatus
from app.models.payment import Payment

HISTORY_LIMIT = 100
# Statuses shown in an account's paginated history
ACCOUNT_HISTORY_STATUSES = (PaymentStatus.success.value, PaymentStatus.failed.value)


def _apply_filters(query, filters: PaymentFilters | None):
    """Apply status / method / date-range filters. Date bounds are inclusive whole days."""
    if filters is None:
        return query
    if filters.status is not None:
        query = query.where(Payment.status == filters.status.value)
    if filters.payment_method is not None:
        query = query.where(Payment.payment_method == filters.payment_method.value)
    if filters.start_date is not None:
        query = query.where(Payment.payment_date >= datetime.combine(filters.start_date, time.min))
    if filters.end_date is not None:
        query = query.where(Payment.payment_date < datetime.combine(filters.end_date + timedelta(days=1), time.min))
    return query


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def _get_customer_by_account(self, account_number: str) -> Customer | None:
        result = await self.db.execute(select(Customer).where(Customer.account_number == account_number))
        return result.scalars().first()

    async def process_payment(self, data: PostPaymentRequest) -> PostPaymentResponse:
        """
        Resolve the account, check the amount against the current balance, then post.
        The poster re-checks the balance atomically; its domain errors map to 404 / 400 here.
        """
        customer = await self._get_customer_by_account(data.account_number)
        if not customer:
            AppException().raise_404("Customer not found")
        if data.payment_amount > customer.outstanding_balance:
            AppException().raise_400("Payment amount exceeds outstanding balance")

        poster = PaymentPoster(self.db)
        try:
            payment = await poster.post_payment(
                customer_id=customer.id,
                account_number=data.account_number,
                amount=data.payment_amount,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
                remarks=data.remarks,
            )
        except CustomerNotFoundError:
            AppException().raise_404("Customer not found")
        except InsufficientBalanceError:
            AppException().raise_400("Payment amount exceeds outstanding balance")

        # Balance was changed by a relative UPDATE; reload it
        await self.db.refresh(customer)
        return PostPaymentResponse(
            success=True,
            message="Payment processed successfully",
            payment=PaymentRecord.model_validate(payment),
            customer=CustomerBalance(
                account_number=customer.account_number,
                customer_name=customer.customer_name,
                outstanding_balance=to_money(customer.outstanding_balance),
                emi_due=to_money(customer.emi_due),
            ),
        )

    async def list_payments(
        self,
        filters: PaymentFilters | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaymentListResponse:
        """All payments with customer names, newest first."""
        count_query = _apply_filters(select(func.count(Payment.id)), filters)
        total = (await self.db.execute(count_query)).scalar() or 0

        query = _apply_filters(
            select(Payment, Customer.customer_name)
            .outerjoin(Customer, Payment.customer_id == Customer.id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc()),
            filters,
        )
        result = await self.db.execute(query.offset((page - 1) * limit).limit(limit))
        items = [
            PaymentListItem(**PaymentRecord.model_validate(p).model_dump(), customer_name=name)
            for p, name in result.all()
        ]
        return PaymentListResponse(items=items, pagination=PaginationMeta.build(page, limit, total))

    async def list_account_payments(self, account_number: str, page: int = 1, limit: int = 20) -> AccountPaymentsResponse:
        """Paginated SUCCESS / FAILED payments of one account, newest first."""
        where = (Payment.account_number == account_number, Payment.status.in_(ACCOUNT_HISTORY_STATUSES))
        total = (await self.db.execute(select(func.count(Payment.id)).where(*where))).scalar() or 0
        result = await self.db.execute(
            select(Payment)
            .where(*where)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [PaymentRecord.model_validate(p) for p in result.scalars().all()]
        return AccountPaymentsResponse(items=items, pagination=PaginationMeta.build(page, limit, total))

    async def get_payment_statistics(self, customer_id: int) -> PaymentStatistics:
        result = await self.db.execute(
            select(
                func.count(Payment.id).label("total_payments"),
                func.coalesce(
                    func.sum(case((Payment.status == PaymentStatus.success.value, Payment.payment_amount), else_=0)),
                    0,
                ).label("total_paid"),
                func.coalesce(
                    func.sum(case((Payment.status == PaymentStatus.failed.value, 1), else_=0)), 0
                ).label("failed_payments"),
                func.max(Payment.payment_date).label("last_payment_date"),
                func.avg(Payment.payment_amount).label("avg_payment_amount"),
            ).where(Payment.customer_id == customer_id)
        )
        row = result.one()
        return PaymentStatistics(
            total_payments=row.total_payments or 0,
            total_paid=to_money(row.total_paid),
            failed_payments=int(row.failed_payments or 0),
            last_payment_date=row.last_payment_date,
            avg_payment_amount=to_money(row.avg_payment_amount) if row.avg_payment_amount is not None else None,
        )

    async def get_payment_history(self, account_number: str) -> PaymentHistoryResponse:
        """Customer summary, statistics and the latest transactions (up to HISTORY_LIMIT)."""
        customer = await self._get_customer_by_account(account_number)
        if not customer:
            AppException().raise_404("Customer not found")

        statistics = await self.get_payment_statistics(customer.id)
        result = await self.db.execute(
            select(Payment)
            .where(Payment.account_number == account_number)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .limit(HISTORY_LIMIT)
        )
        transactions = [HistoryTransaction.model_validate(p) for p in result.scalars().all()]
        return PaymentHistoryResponse(
            customer=HistoryCustomer(
                account_number=customer.account_number,
                customer_name=customer.customer_name,
                outstanding_balance=to_money(customer.outstanding_balance),
            ),
            statistics=statistics,
            transactions=transactions,
        )

    async def get_payment_by_reference(self, payment_reference_id: str) -> Payment | None:
        result = await self.db.execute(
            select(Payment).where(Payment.payment_reference_id == payment_reference_id)
        )
        return result.scalars().first()

    async def export_payments_to_excel(self, filters: PaymentFilters | None = None) -> bytes:
        """Export payments to Excel (.xlsx). Same filters as list_payments (no pagination)."""
        query = _apply_filters(
            select(Payment, Customer.customer_name)
            .outerjoin(Customer, Payment.customer_id == Customer.id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc()),
            filters,
        )
        result = await self.db.execute(query)
        rows = result.all()

        wb = Workbook()
        ws = wb.active
        ws.title = "Payments"

        headers = [
            "Reference",
            "Account Number",
            "Customer Name",
            "Amount",
            "Payment Method",
            "Status",
            "Transaction ID",
            "Remarks",
            "Payment Date",
        ]
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)
            cell.alignment = Alignment(horizontal="center", wrap_text=True)

        for row_idx, (p, customer_name) in enumerate(rows, start=2):
            ws.cell(row=row_idx, column=1, value=p.payment_reference_id)
            ws.cell(row=row_idx, column=2, value=p.account_number)
            ws.cell(row=row_idx, column=3, value=customer_name or "")
            cell = ws.cell(row=row_idx, column=4, value=to_money(p.payment_amount))
            cell.number_format = "#,##0.00"
            ws.cell(row=row_idx, column=5, value=p.payment_method or "")
            ws.cell(row=row_idx, column=6, value=p.status or "")
            ws.cell(row=row_idx, column=7, value=p.transaction_id or "")
            ws.cell(row=row_idx, column=8, value=p.remarks or "")
            ws.cell(row=row_idx, column=9, value=p.payment_date.strftime("%Y-%m-%d %H:%M:%S"))

        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer.getvalue()
