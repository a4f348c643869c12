# backend/modules/payments/models/payment_models.py

from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Numeric, Text
)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin
from enum import Enum


class PaymentStatus(str, Enum):
    """Payment status states"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampMixin):
    """Payment transaction record"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    # Gateway that owns the transaction and its reference
    gateway = Column(String(50), nullable=True)
    transaction_id = Column(String(255), nullable=False, unique=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    failure_message = Column(Text, nullable=True)

    refund_amount = Column(Numeric(10, 2), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    order = relationship("Order")

    def __repr__(self):
        return f"<Payment(id={self.id}, transaction_id='{self.transaction_id}', status='{self.status}')>"
