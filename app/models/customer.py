from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.enums import CustomerStatus


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=True)
    phone = Column(String(20), nullable=True)
    issue_date = Column(Date, nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    tenure = Column(Integer, nullable=False)  # months
    emi_due = Column(Numeric(12, 2), nullable=False)
    loan_amount = Column(Numeric(15, 2), nullable=True)
    # Only lowered by the payment poster; never negative
    outstanding_balance = Column(Numeric(15, 2), nullable=False, default=0, index=True)
    status = Column(String(20), default=CustomerStatus.active.value, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payments = relationship("Payment", back_populates="customer", passive_deletes=True)
    schedule_entries = relationship("PaymentScheduleEntry", back_populates="customer", passive_deletes=True)
