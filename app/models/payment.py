from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.enums import PaymentMethod, PaymentStatus


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_reference_id = Column(String(100), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    account_number = Column(String(50), nullable=False, index=True)  # denormalized from customers
    payment_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    payment_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), default=PaymentStatus.pending.value, nullable=False, index=True)
    payment_method = Column(String(20), default=PaymentMethod.upi.value, nullable=False)
    transaction_id = Column(String(100), nullable=True)  # external gateway / bank reference
    remarks = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="payments")

    __table_args__ = (
        Index("uq_payments_payment_reference_id", "payment_reference_id", unique=True),
        Index("ix_payments_customer_date", "customer_id", "payment_date"),
        CheckConstraint("payment_amount > 0", name="ck_payments_amount_positive"),
    )
