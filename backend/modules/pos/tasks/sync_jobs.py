# backend/modules/pos/tasks/sync_jobs.py

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.restaurant_models import Restaurant
from modules.orders.models.order_models import Order
from modules.payments.models.payment_models import Payment
from ..exceptions import MappingNotFoundError, MappingPendingError
from ..services.mapping_store import MappingStore
from ..services.pos_integration_service import POSIntegrationService, MENU_FROM_POS
from .sync_runner import SyncJob, DiscardTask


class OrderCreateJob(SyncJob):
    """Push a platform order into the restaurant's POS"""

    def __init__(self, db: Session, service: POSIntegrationService, order_id: int, pos_type: str):
        self.db = db
        self.service = service
        self.order_id = order_id
        self.pos_type = getattr(pos_type, "value", pos_type)
        self.order: Optional[Order] = None

    def load(self) -> None:
        self.order = self.db.get(Order, self.order_id)
        if self.order is None:
            raise DiscardTask(f"order {self.order_id} no longer exists")

    @property
    def entity_id(self) -> Any:
        return self.order_id

    @property
    def order_lock_id(self) -> Any:
        return self.order_id

    @property
    def restaurant_id(self) -> Any:
        return self.order.restaurant_id if self.order is not None else None

    def execute(self) -> Dict[str, Any]:
        result = self.service.create_order(self.order, self.pos_type)
        return {"pos_order_id": result.pos_order_id}

    def on_exhausted(self, error: Exception) -> None:
        self.db.rollback()
        MappingStore(self.db).record_failed(self.order_id, self.pos_type)
        self.db.commit()


class OrderStatusJob(SyncJob):
    """Apply a status reported by the POS to the mapped platform order"""

    def __init__(self, db: Session, service: POSIntegrationService,
                 pos_order_id: str, pos_type: str, gateway_status: str):
        self.db = db
        self.service = service
        self.pos_order_id = str(pos_order_id)
        self.pos_type = getattr(pos_type, "value", pos_type)
        self.gateway_status = gateway_status
        self.order: Optional[Order] = None

    def load(self) -> None:
        mapping = MappingStore(self.db).get_by_pos_order_id(self.pos_order_id, self.pos_type)
        if mapping is None:
            raise DiscardTask(f"no {self.pos_type} mapping for POS order {self.pos_order_id}")
        self.order = self.db.get(Order, mapping.foodhub_order_id)
        if self.order is None:
            raise DiscardTask(f"order {mapping.foodhub_order_id} no longer exists")

    @property
    def entity_id(self) -> Any:
        return self.pos_order_id

    @property
    def order_lock_id(self) -> Any:
        return self.order.id if self.order is not None else None

    @property
    def dedupe_id(self) -> Any:
        # A later status for the same POS order is new work
        return f"{self.pos_order_id}.{str(self.gateway_status).strip().upper()}"

    @property
    def restaurant_id(self) -> Any:
        return self.order.restaurant_id if self.order is not None else None

    def execute(self) -> Dict[str, Any]:
        result = self.service.update_order_status(self.pos_order_id, self.pos_type, self.gateway_status)
        return {"order_id": result.order_id, "status": result.status, "changed": result.changed}


class PaymentSyncJob(SyncJob):
    """Record a captured payment in the POS"""

    def __init__(self, db: Session, service: POSIntegrationService, payment_id: int, pos_type: str):
        self.db = db
        self.service = service
        self.payment_id = payment_id
        self.pos_type = getattr(pos_type, "value", pos_type)
        self.payment: Optional[Payment] = None
        self.order: Optional[Order] = None

    def load(self) -> None:
        self.payment = self.db.get(Payment, self.payment_id)
        if self.payment is None:
            raise DiscardTask(f"payment {self.payment_id} no longer exists")
        self.order = self.db.get(Order, self.payment.order_id)
        if self.order is None:
            raise DiscardTask(f"order {self.payment.order_id} no longer exists")

    @property
    def entity_id(self) -> Any:
        return self.payment_id

    @property
    def order_lock_id(self) -> Any:
        return self.order.id if self.order is not None else None

    @property
    def restaurant_id(self) -> Any:
        return self.order.restaurant_id if self.order is not None else None

    def execute(self) -> Dict[str, Any]:
        try:
            result = self.service.sync_payment(self.payment, self.pos_type)
        except MappingNotFoundError:
            # The order push may still be in flight; wait for it
            raise MappingPendingError(self.pos_type, self.order.id)
        return {"pos_payment_id": result.pos_payment_id}


class RestaurantSyncJob(SyncJob):
    """Base for pulls scoped to a whole restaurant"""

    def __init__(self, db: Session, service: POSIntegrationService, restaurant_id: int, pos_type: str):
        self.db = db
        self.service = service
        self._restaurant_id = restaurant_id
        self.pos_type = getattr(pos_type, "value", pos_type)

    def load(self) -> None:
        if self.db.get(Restaurant, self._restaurant_id) is None:
            raise DiscardTask(f"restaurant {self._restaurant_id} no longer exists")

    @property
    def entity_id(self) -> Any:
        return self._restaurant_id

    @property
    def restaurant_id(self) -> Any:
        return self._restaurant_id


class InventorySyncJob(RestaurantSyncJob):

    def execute(self) -> Dict[str, Any]:
        result = self.service.sync_inventory(self._restaurant_id, self.pos_type)
        return {
            "updated_count": result.updated_count,
            "skipped_count": result.skipped_count,
            "errors": result.errors,
        }


class MenuSyncJob(RestaurantSyncJob):

    def __init__(self, db: Session, service: POSIntegrationService, restaurant_id: int, pos_type: str,
                 direction: str = MENU_FROM_POS):
        super().__init__(db, service, restaurant_id, pos_type)
        self.direction = direction

    def execute(self) -> Dict[str, Any]:
        result = self.service.sync_menu(self._restaurant_id, self.pos_type, direction=self.direction)
        return result.model_dump()
