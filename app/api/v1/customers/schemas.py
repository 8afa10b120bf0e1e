from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.enums import CustomerStatus, ScheduleStatus


class CreateCustomerRequest(BaseModel):
    """New loan account. outstanding_balance defaults to loan_amount when omitted."""
    account_number: str = Field(..., min_length=3, max_length=50, examples=["ACC004"])
    customer_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    issue_date: date
    interest_rate: Decimal = Field(..., ge=0, max_digits=5, decimal_places=2)
    tenure: int = Field(..., ge=1, description="Loan tenure in months")
    emi_due: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    loan_amount: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    outstanding_balance: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    generate_schedule: bool = Field(
        False, description="Create `tenure` monthly PENDING installments of emi_due, starting one month after issue_date"
    )

    @field_validator("account_number", "customer_name", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def balance_defaults_to_loan_amount(self):
        if self.outstanding_balance is None:
            if self.loan_amount is None:
                raise ValueError("outstanding_balance or loan_amount is required")
            self.outstanding_balance = self.loan_amount
        return self


class UpdateCustomerRequest(BaseModel):
    """Administrative update (all optional). The outstanding balance only changes through payments."""
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    interest_rate: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=2)
    tenure: Optional[int] = Field(None, ge=1)
    emi_due: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    status: Optional[CustomerStatus] = None


class CustomerResponse(BaseModel):
    id: int
    account_number: str
    customer_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    issue_date: date
    interest_rate: Decimal
    tenure: int
    emi_due: Decimal
    loan_amount: Optional[Decimal] = None
    outstanding_balance: Decimal
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerDetailResponse(CustomerResponse):
    """Customer with payment info: successful payment count and total paid, last payment date of any status."""
    total_payments: int = 0
    total_paid: Decimal = Decimal("0.00")
    last_payment_date: Optional[datetime] = None


class CustomerListResponse(BaseModel):
    """Active customers, newest first."""
    items: List[CustomerResponse]
    limit: int
    offset: int
    count: int


class ScheduleEntryResponse(BaseModel):
    """Single installment: due date, amount due, amount paid, status."""
    id: int
    due_date: date
    due_amount: Decimal
    paid_amount: Decimal
    status: str = Field(..., description=" | ".join(s.value for s in ScheduleStatus))

    class Config:
        from_attributes = True


class CustomerScheduleResponse(BaseModel):
    """Installment schedule of one customer ordered by due date."""
    account_number: str
    customer_name: str
    entries: List[ScheduleEntryResponse]
