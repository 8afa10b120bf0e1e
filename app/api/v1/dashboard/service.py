import logging
from datetime import datetime
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dashboard.schemas import DashboardResponse, DashboardSummaryStats, RecentPayment
from app.core.utils import to_money
from app.models.customer import Customer
from app.models.enums import CustomerStatus, PaymentStatus
from app.models.payment import Payment

RECENT_PAYMENTS_LIMIT = 20


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def get_dashboard_data(self) -> DashboardResponse:
        """Summary stats plus the most recent payments."""
        summary_stats = await self.get_summary_stats()
        recent_payments = await self.get_recent_payments(limit=RECENT_PAYMENTS_LIMIT)
        return DashboardResponse(summary_stats=summary_stats, recent_payments=recent_payments)

    async def get_summary_stats(self) -> DashboardSummaryStats:
        active = Customer.status == CustomerStatus.active.value
        success = Payment.status == PaymentStatus.success.value

        active_customers = (await self.db.execute(select(func.count(Customer.id)).where(active))).scalar() or 0
        total_outstanding = (
            await self.db.execute(select(func.coalesce(func.sum(Customer.outstanding_balance), 0)).where(active))
        ).scalar()

        month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        collected_this_month = (
            await self.db.execute(
                select(func.coalesce(func.sum(Payment.payment_amount), 0)).where(
                    success, Payment.payment_date >= month_start
                )
            )
        ).scalar()
        successful_transactions = (await self.db.execute(select(func.count(Payment.id)).where(success))).scalar() or 0

        return DashboardSummaryStats(
            active_customers=active_customers,
            collected_this_month=to_money(collected_this_month),
            total_outstanding=to_money(total_outstanding),
            successful_transactions=successful_transactions,
        )

    async def get_recent_payments(self, limit: int = RECENT_PAYMENTS_LIMIT) -> List[RecentPayment]:
        result = await self.db.execute(
            select(Payment, Customer.customer_name)
            .outerjoin(Customer, Payment.customer_id == Customer.id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
            .limit(limit)
        )
        return [
            RecentPayment(
                payment_reference_id=p.payment_reference_id,
                account_number=p.account_number,
                customer_name=name,
                payment_date=p.payment_date,
                payment_amount=to_money(p.payment_amount),
                payment_method=p.payment_method,
                status=p.status,
            )
            for p, name in result.all()
        ]
