# backend/modules/webhooks/models/webhook_models.py

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, Float, JSON, UniqueConstraint
)
from core.database import Base
from core.mixins import TimestampMixin


class WebhookLog(Base):
    """Append-only record of every inbound webhook, payload sanitized"""
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    service = Column(String(50), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    success = Column(Boolean, nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)  # IPv6
    user_agent = Column(String(500), nullable=True)
    signature_verified = Column(Boolean, nullable=False, default=False)
    response_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class WebhookStatistics(Base):
    """Running counters per (service, event type)"""
    __tablename__ = "webhook_statistics"

    id = Column(Integer, primary_key=True, index=True)
    service = Column(String(50), nullable=False)
    event_type = Column(String(100), nullable=False)
    total_received = Column(Integer, nullable=False, default=0)
    successful_processed = Column(Integer, nullable=False, default=0)
    failed_processed = Column(Integer, nullable=False, default=0)
    average_response_time_ms = Column(Float, nullable=False, default=0.0)
    last_received_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("service", "event_type", name="uq_webhook_statistics_service_event"),
    )

    @property
    def success_rate(self) -> float:
        """Percentage of received webhooks processed successfully"""
        if not self.total_received:
            return 0.0
        return round(self.successful_processed / self.total_received * 100, 2)

    @property
    def failure_rate(self) -> float:
        if not self.total_received:
            return 0.0
        return round(self.failed_processed / self.total_received * 100, 2)


class WebhookRegistration(Base, TimestampMixin):
    """Webhook endpoint registered with a payment gateway"""
    __tablename__ = "webhook_registrations"

    id = Column(Integer, primary_key=True, index=True)
    service = Column(String(50), nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    webhook_url = Column(String(500), nullable=False)
    webhook_id = Column(String(100), nullable=False, unique=True)
    signature_key = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
