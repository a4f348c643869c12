"""
Circuit breaker for POS connections.

A failed call records ``{status: failed, failed_at, ...}`` under
``pos.connection.{pos_type}.{restaurant_id}``; while that record is inside
its cool-down window, sync tasks skip the network call. A successful call
deletes the record. Anything unreadable counts as healthy so a cache outage
never blocks syncing.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from core.cache import SyncCache
from core.config import settings
from .sync_metrics import SyncMetrics

logger = logging.getLogger(__name__)


class ConnectionHealthCache:

    KEY_TEMPLATE = "pos.connection.{pos_type}.{restaurant_id}"

    def __init__(self, cache: SyncCache, clock: Optional[Callable[[], float]] = None):
        self.cache = cache
        self.clock = clock or time.time

    @classmethod
    def key(cls, pos_type: str, restaurant_id: Any) -> str:
        return cls.KEY_TEMPLATE.format(pos_type=pos_type, restaurant_id=restaurant_id)

    def get_status(self, pos_type: str, restaurant_id: Any) -> Optional[Dict[str, Any]]:
        """Raw health record, or None when the connection has no recorded failure"""
        record = self.cache.get(self.key(pos_type, restaurant_id))
        return record if isinstance(record, dict) else None

    def is_healthy(
        self,
        pos_type: str,
        restaurant_id: Any,
        cooldown_seconds: Optional[int] = None,
        escalated_cooldown_seconds: Optional[int] = None,
    ) -> bool:
        """
        False only while a failure record is inside its cool-down window.

        ``escalated_cooldown_seconds`` replaces the normal window once the
        record has reached the consecutive failure threshold.
        """
        if cooldown_seconds is None:
            cooldown_seconds = settings.POS_HEALTH_COOLDOWN_SECONDS

        record = self.get_status(pos_type, restaurant_id)
        if not record or record.get("status") != "failed":
            return True

        try:
            failed_at = float(record["failed_at"])
            failures = int(record.get("consecutive_failures", 1))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed health record for {pos_type} restaurant {restaurant_id}")
            return True

        window = cooldown_seconds
        if (
            escalated_cooldown_seconds is not None
            and failures >= settings.POS_HEALTH_ESCALATION_THRESHOLD
        ):
            window = escalated_cooldown_seconds

        return self.clock() - failed_at >= window

    def record_outcome(
        self,
        pos_type: str,
        restaurant_id: Any,
        success: bool,
        error: Optional[str] = None,
        ttl_seconds: int = 1800,
    ) -> None:
        key = self.key(pos_type, restaurant_id)

        if success:
            self.cache.delete(key)
            SyncMetrics.set_connection_health(pos_type, restaurant_id, True)
            return

        previous = self.get_status(pos_type, restaurant_id) or {}
        try:
            failures = int(previous.get("consecutive_failures", 0)) + 1
        except (TypeError, ValueError):
            failures = 1

        now = self.clock()
        record = {
            "status": "failed",
            "failed_at": now,
            "failed_at_iso": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
            "last_error": error,
            "consecutive_failures": failures,
        }
        if not self.cache.set(key, record, ttl=ttl_seconds):
            logger.warning(f"Could not record health failure for {pos_type} restaurant {restaurant_id}")
        SyncMetrics.set_connection_health(pos_type, restaurant_id, False)
        logger.warning(
            f"{pos_type} connection for restaurant {restaurant_id} marked failed "
            f"({failures} consecutive): {error}"
        )
