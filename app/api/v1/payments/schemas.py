from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.models.enums import PaymentMethod, PaymentStatus


# --- Payment record - defined first so the response envelopes can reference it ---
class PaymentRecord(BaseModel):
    """Single payment row."""
    id: int
    payment_reference_id: str
    customer_id: int
    account_number: str
    payment_date: datetime
    payment_amount: Decimal
    status: str = Field(..., description="PENDING | SUCCESS | FAILED | REVERSED")
    payment_method: str = Field(..., description="UPI | CARD | NET_BANKING | CHEQUE")
    transaction_id: str | None = None
    remarks: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PaymentListItem(PaymentRecord):
    """Payment row joined with the customer's name (all-payments listing)."""
    customer_name: str | None = None


# --- Post payment ---
class PostPaymentRequest(BaseModel):
    """Payment posted against a customer's account number."""
    account_number: str = Field(..., min_length=3, max_length=50, description="Customer account number")
    payment_amount: Decimal = Field(
        ..., gt=0, max_digits=12, decimal_places=2, description="Amount paid, at most two decimal places"
    )
    payment_method: PaymentMethod = Field(PaymentMethod.upi, description="UPI | CARD | NET_BANKING | CHEQUE")
    transaction_id: str | None = Field(None, max_length=100, description="External transaction id")
    remarks: str | None = Field(None, max_length=500, description="Free-text remarks")

    @field_validator("account_number", mode="before")
    @classmethod
    def strip_account_number(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("transaction_id", "remarks", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class CustomerBalance(BaseModel):
    """Customer balance after a posting."""
    account_number: str
    customer_name: str
    outstanding_balance: Decimal
    emi_due: Decimal


class PostPaymentResponse(BaseModel):
    """Result of a posting: the payment and the customer's new balance."""
    success: bool = Field(True, description="Whether the payment was processed successfully")
    message: str = Field(..., description="Human-readable result message")
    payment: PaymentRecord
    customer: CustomerBalance


# --- Pagination ---
class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


class PaymentListResponse(BaseModel):
    """Paginated list of payments, newest first."""
    items: list[PaymentListItem] = Field(default_factory=list)
    pagination: PaginationMeta


class AccountPaymentsResponse(BaseModel):
    """Paginated payments of one account, newest first."""
    items: list[PaymentRecord] = Field(default_factory=list)
    pagination: PaginationMeta


# --- Detailed history ---
class PaymentStatistics(BaseModel):
    total_payments: int = Field(..., description="All payments of the customer, any status")
    total_paid: Decimal = Field(..., description="Sum of SUCCESS payments")
    failed_payments: int
    last_payment_date: datetime | None = None
    avg_payment_amount: Decimal | None = None


class HistoryCustomer(BaseModel):
    account_number: str
    customer_name: str
    outstanding_balance: Decimal


class HistoryTransaction(BaseModel):
    payment_reference_id: str
    payment_date: datetime
    payment_amount: Decimal
    status: str
    payment_method: str
    transaction_id: str | None = None

    class Config:
        from_attributes = True


class PaymentHistoryResponse(BaseModel):
    """Customer summary, statistics and the latest transactions."""
    customer: HistoryCustomer
    statistics: PaymentStatistics
    transactions: list[HistoryTransaction] = Field(default_factory=list)


class PaymentFilters(BaseModel):
    """Filters shared by the payment listing and the Excel export."""
    status: PaymentStatus | None = None
    payment_method: PaymentMethod | None = None
    start_date: date | None = None
    end_date: date | None = None
