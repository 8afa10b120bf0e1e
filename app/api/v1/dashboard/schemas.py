from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardSummaryStats(BaseModel):
    """Summary statistics for the collections dashboard."""
    active_customers: int
    collected_this_month: Decimal = Field(..., description="Sum of SUCCESS payments in the current calendar month")
    total_outstanding: Decimal = Field(..., description="Outstanding balance across active customers")
    successful_transactions: int


class RecentPayment(BaseModel):
    """Recent payment information."""
    payment_reference_id: str
    account_number: str
    customer_name: Optional[str] = None
    payment_date: datetime
    payment_amount: Decimal
    payment_method: str
    status: str

    class Config:
        from_attributes = True


class DashboardResponse(BaseModel):
    summary_stats: DashboardSummaryStats
    recent_payments: List[RecentPayment]
