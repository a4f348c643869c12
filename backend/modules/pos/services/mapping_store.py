# backend/modules/pos/services/mapping_store.py

"""
Order mappings and sync log persistence.

The mapping table is the only place a platform order is correlated with
its POS order. Writes here flush but never commit; the caller owns the
transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.security_config import sanitize_log_data
from ..enums.pos_enums import MappingSyncStatus
from ..models.pos_order_mapping import POSOrderMapping
from ..models.pos_sync_log import POSSyncLog

logger = logging.getLogger(__name__)


class MappingStore:

    def __init__(self, db: Session):
        self.db = db

    def get_by_pos_order_id(self, pos_order_id: str, pos_type: str) -> Optional[POSOrderMapping]:
        return (
            self.db.query(POSOrderMapping)
            .filter(
                POSOrderMapping.pos_order_id == str(pos_order_id),
                POSOrderMapping.pos_type == pos_type,
            )
            .first()
        )

    def get_for_order(self, foodhub_order_id: int, pos_type: str) -> Optional[POSOrderMapping]:
        return (
            self.db.query(POSOrderMapping)
            .filter(
                POSOrderMapping.foodhub_order_id == foodhub_order_id,
                POSOrderMapping.pos_type == pos_type,
            )
            .first()
        )

    def _upsert(self, foodhub_order_id: int, pos_type: str, **values) -> POSOrderMapping:
        mapping = self.get_for_order(foodhub_order_id, pos_type)
        if mapping is None:
            try:
                with self.db.begin_nested():
                    mapping = POSOrderMapping(
                        foodhub_order_id=foodhub_order_id, pos_type=pos_type, **values
                    )
                    self.db.add(mapping)
                return mapping
            except IntegrityError:
                # Another worker inserted the row first; fall through to update it
                mapping = self.get_for_order(foodhub_order_id, pos_type)
                if mapping is None:
                    raise

        for field, value in values.items():
            setattr(mapping, field, value)
        self.db.flush()
        return mapping

    def record_synced(self, foodhub_order_id: int, pos_type: str, pos_order_id: str) -> POSOrderMapping:
        return self._upsert(
            foodhub_order_id,
            pos_type,
            pos_order_id=str(pos_order_id),
            sync_status=MappingSyncStatus.SYNCED.value,
        )

    def record_failed(self, foodhub_order_id: int, pos_type: str) -> POSOrderMapping:
        """Mark an order whose push was abandoned; a synced mapping is left as is"""
        existing = self.get_for_order(foodhub_order_id, pos_type)
        if existing is not None and existing.sync_status == MappingSyncStatus.SYNCED.value:
            logger.info(
                f"Order {foodhub_order_id} already synced to {pos_type} as "
                f"{existing.pos_order_id}, keeping mapping"
            )
            return existing
        return self._upsert(
            foodhub_order_id,
            pos_type,
            pos_order_id=None,
            sync_status=MappingSyncStatus.FAILED.value,
        )

    def log_sync(
        self,
        sync_type: str,
        status: str,
        pos_type: str,
        details: Dict[str, Any],
        integration_id: Optional[int] = None,
        restaurant_id: Optional[int] = None,
    ) -> POSSyncLog:
        """Append one sync log row"""
        entry = POSSyncLog(
            integration_id=integration_id,
            restaurant_id=restaurant_id,
            pos_type=pos_type,
            sync_type=sync_type,
            status=status,
            details=sanitize_log_data(details),
            synced_at=datetime.utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry
