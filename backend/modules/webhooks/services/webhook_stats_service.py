# backend/modules/webhooks/services/webhook_stats_service.py

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.webhook_models import WebhookStatistics

logger = logging.getLogger(__name__)


class WebhookStatsService:
    """
    Per (service, event type) webhook counters.

    Counters are bumped with SQL expressions rather than read-modify-write,
    so concurrent webhooks for the same gateway never lose an increment.
    The caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _increment(self, service: str, event_type: str, success: bool, response_time_ms: int) -> int:
        table = WebhookStatistics.__table__
        stmt = (
            update(table)
            .where(table.c.service == service, table.c.event_type == event_type)
            .values(
                total_received=table.c.total_received + 1,
                successful_processed=table.c.successful_processed + (1 if success else 0),
                failed_processed=table.c.failed_processed + (0 if success else 1),
                # Right-hand sides see the pre-update row
                average_response_time_ms=case(
                    (table.c.total_received == 0, float(response_time_ms)),
                    else_=(
                        table.c.average_response_time_ms * table.c.total_received + response_time_ms
                    ) / (table.c.total_received + 1),
                ),
                last_received_at=datetime.utcnow(),
            )
        )
        return self.db.execute(stmt).rowcount

    def record(self, service: str, event_type: str, success: bool, response_time_ms: int) -> None:
        """Count one received webhook"""
        if self._increment(service, event_type, success, response_time_ms):
            return

        try:
            with self.db.begin_nested():
                self.db.add(WebhookStatistics(
                    service=service,
                    event_type=event_type,
                    total_received=1,
                    successful_processed=1 if success else 0,
                    failed_processed=0 if success else 1,
                    average_response_time_ms=float(response_time_ms),
                    last_received_at=datetime.utcnow(),
                ))
        except IntegrityError:
            # Another worker created the row first
            self._increment(service, event_type, success, response_time_ms)

    def get_statistics(self, service: Optional[str] = None, event_type: Optional[str] = None) -> List[WebhookStatistics]:
        query = self.db.query(WebhookStatistics)
        if service:
            query = query.filter(WebhookStatistics.service == service)
        if event_type:
            query = query.filter(WebhookStatistics.event_type == event_type)
        return query.order_by(WebhookStatistics.service, WebhookStatistics.event_type).all()

    def get(self, service: str, event_type: str) -> Optional[WebhookStatistics]:
        return self.db.query(WebhookStatistics).filter(
            WebhookStatistics.service == service,
            WebhookStatistics.event_type == event_type,
        ).first()
