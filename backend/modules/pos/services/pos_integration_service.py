# backend/modules/pos/services/pos_integration_service.py

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.audit_logger import AuditLogger, audit_logger as default_audit_logger
from core.cache import get_cache
from core.menu_models import MenuItem
from core.notification_service import NotificationService
from modules.orders.enums.order_enums import OrderStatus
from modules.orders.models.order_models import Order
from ..adapters.adapter_factory import AdapterFactory
from ..adapters.base_adapter import BasePOSAdapter
from ..enums.pos_enums import POSSyncStatus, POSSyncType, MappingSyncStatus
from ..exceptions import (
    POSSyncException,
    IntegrationNotFoundError,
    OrderNotFoundError,
    MappingNotFoundError,
)
from ..models.pos_integration import POSIntegration
from ..models.pos_sync_log import POSSyncLog
from ..schemas.pos_schemas import (
    OrderPushResult,
    StatusUpdateResult,
    MenuSyncResult,
    PriceSyncResult,
    InventorySyncResult,
    PaymentPushResult,
    ConnectionTestResult,
    IntegrationStatus,
)
from .connection_health import ConnectionHealthCache
from .mapping_store import MappingStore
from .sync_metrics import SyncMetrics

logger = logging.getLogger(__name__)

MENU_FROM_POS = "from_pos"
MENU_TO_POS = "to_pos"
MENU_BOTH = "both"
MENU_DIRECTIONS = (MENU_FROM_POS, MENU_TO_POS, MENU_BOTH)


class POSIntegrationService:
    """
    Synchronous façade over the POS adapters.

    Every public operation appends exactly one ``pos_sync_logs`` row, on
    success and on failure alike. Failures roll back the operation's own
    changes before the failure row is written, then re-raise.
    """

    STATUS_LOOKBACK = timedelta(hours=24)

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationService] = None,
        audit_logger: Optional[AuditLogger] = None,
        health_cache: Optional[ConnectionHealthCache] = None,
        adapter_factory: Optional[AdapterFactory] = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationService()
        self.audit_logger = audit_logger or default_audit_logger
        self.health_cache = health_cache or ConnectionHealthCache(get_cache())
        self.adapter_factory = adapter_factory or AdapterFactory()
        self.mappings = MappingStore(db)

    # Lookups

    def get_active_integration(self, restaurant_id: int, pos_type: Any) -> POSIntegration:
        vendor = self.adapter_factory.resolve_vendor(pos_type)
        integration = (
            self.db.query(POSIntegration)
            .filter(
                POSIntegration.restaurant_id == restaurant_id,
                POSIntegration.pos_type == vendor.value,
                POSIntegration.is_active.is_(True),
            )
            .first()
        )
        if integration is None:
            raise IntegrationNotFoundError(restaurant_id, vendor.value)
        return integration

    def _adapter_for(self, integration: POSIntegration) -> BasePOSAdapter:
        return self.adapter_factory.create_adapter(integration.pos_type, integration.configuration)

    @contextmanager
    def _timed(self, pos_type: str, operation: str):
        started = time.monotonic()
        try:
            yield
        finally:
            SyncMetrics.observe_request(pos_type, operation, time.monotonic() - started)

    # Sync log bookkeeping

    def _log_success(self, sync_type: POSSyncType, integration: POSIntegration, details: Dict[str, Any]):
        integration.last_sync_at = datetime.utcnow()
        self.mappings.log_sync(
            sync_type.value,
            POSSyncStatus.SUCCESS.value,
            integration.pos_type,
            details,
            integration_id=integration.id,
            restaurant_id=integration.restaurant_id,
        )
        self.db.commit()

    def _log_failure(
        self,
        sync_type: POSSyncType,
        pos_type: Any,
        error: Exception,
        details: Dict[str, Any],
        integration_id: Optional[int] = None,
        restaurant_id: Optional[int] = None,
    ):
        self.db.rollback()
        failure_details = {**details, "error": str(error)}
        if isinstance(error, POSSyncException):
            failure_details["error_code"] = error.error_code
        try:
            self.mappings.log_sync(
                sync_type.value,
                POSSyncStatus.FAILED.value,
                getattr(pos_type, "value", str(pos_type)),
                failure_details,
                integration_id=integration_id,
                restaurant_id=restaurant_id,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not write {sync_type.value} sync failure log: {e}")

    # Operations

    def create_order(self, order: Order, pos_type: Any) -> OrderPushResult:
        """Push an order to the POS and record the mapping"""
        integration_id = None
        details = {"order_id": order.id, "action": "create_order"}
        try:
            integration = self.get_active_integration(order.restaurant_id, pos_type)
            integration_id = integration.id

            existing = self.mappings.get_for_order(order.id, integration.pos_type)
            if existing is not None and existing.sync_status == MappingSyncStatus.SYNCED.value:
                logger.info(f"Order {order.id} already in {integration.pos_type} as {existing.pos_order_id}")
                self._log_success(POSSyncType.ORDER, integration, {
                    **details, "pos_order_id": existing.pos_order_id, "already_synced": True,
                })
                return OrderPushResult(success=True, pos_order_id=existing.pos_order_id)

            adapter = self._adapter_for(integration)
            with self._timed(integration.pos_type, "create_order"):
                pos_order_id = adapter.push_order(order)

            self.mappings.record_synced(order.id, integration.pos_type, pos_order_id)
            self._log_success(POSSyncType.ORDER, integration, {**details, "pos_order_id": pos_order_id})
            logger.info(f"Order {order.id} created in {integration.pos_type} as {pos_order_id}")
            return OrderPushResult(success=True, pos_order_id=pos_order_id)
        except Exception as e:
            logger.error(f"Failed to create order {order.id} in {pos_type}: {e}")
            self._log_failure(POSSyncType.ORDER, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=order.restaurant_id)
            raise

    def update_order_status(self, pos_order_id: str, pos_type: Any, gateway_status: str) -> StatusUpdateResult:
        """Apply a POS order status to the mapped platform order"""
        integration_id = None
        restaurant_id = None
        details = {"pos_order_id": pos_order_id, "gateway_status": gateway_status, "action": "status_update"}
        try:
            vendor = self.adapter_factory.resolve_vendor(pos_type)
            mapping = self.mappings.get_by_pos_order_id(pos_order_id, vendor.value)
            if mapping is None:
                raise MappingNotFoundError(vendor.value, pos_order_id=pos_order_id)

            order = self.db.get(Order, mapping.foodhub_order_id)
            if order is None:
                raise OrderNotFoundError(mapping.foodhub_order_id)
            restaurant_id = order.restaurant_id

            integration = self.get_active_integration(order.restaurant_id, vendor)
            integration_id = integration.id
            new_status = self._adapter_for(integration).translate_status(gateway_status)

            result = self._apply_status(order, new_status, vendor.value)
            self._log_success(POSSyncType.ORDER, integration, {
                **details, "order_id": order.id, "status": result.status, "changed": result.changed,
            })
        except Exception as e:
            logger.error(f"Failed to update status for {pos_type} order {pos_order_id}: {e}")
            self._log_failure(POSSyncType.ORDER, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=restaurant_id)
            raise

        if result.changed:
            self._notify_status_change(order)
        return result

    def pull_order_status(self, order: Order, pos_type: Any) -> StatusUpdateResult:
        """Ask the POS for the current status of an already pushed order"""
        integration_id = None
        details = {"order_id": order.id, "action": "status_pull"}
        try:
            integration = self.get_active_integration(order.restaurant_id, pos_type)
            integration_id = integration.id

            mapping = self.mappings.get_for_order(order.id, integration.pos_type)
            if mapping is None or mapping.sync_status != MappingSyncStatus.SYNCED.value or not mapping.pos_order_id:
                raise MappingNotFoundError(integration.pos_type, foodhub_order_id=order.id)

            adapter = self._adapter_for(integration)
            with self._timed(integration.pos_type, "fetch_order_status"):
                gateway_status = adapter.fetch_order_status(mapping.pos_order_id)

            result = self._apply_status(order, adapter.translate_status(gateway_status), integration.pos_type)
            self._log_success(POSSyncType.ORDER, integration, {
                **details,
                "pos_order_id": mapping.pos_order_id,
                "gateway_status": gateway_status,
                "status": result.status,
                "changed": result.changed,
            })
        except Exception as e:
            logger.error(f"Failed to pull status of order {order.id} from {pos_type}: {e}")
            self._log_failure(POSSyncType.ORDER, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=order.restaurant_id)
            raise

        if result.changed:
            self._notify_status_change(order)
        return result

    def _apply_status(self, order: Order, new_status: OrderStatus, source: str) -> StatusUpdateResult:
        changed = order.status != new_status.value
        if changed:
            previous = order.status
            order.status = new_status.value
            now = datetime.utcnow()
            if new_status == OrderStatus.CONFIRMED and order.confirmed_at is None:
                order.confirmed_at = now
            if new_status == OrderStatus.CANCELLED and order.cancelled_at is None:
                order.cancelled_at = now
            logger.info(f"Order {order.id} status {previous} -> {new_status.value} from {source}")
        return StatusUpdateResult(order_id=order.id, status=new_status.value, changed=changed)

    def _notify_status_change(self, order: Order):
        try:
            self.notifier.send_order_status_update(order)
        except Exception as e:
            logger.error(f"Status update notice for order {order.id} failed: {e}")

    def sync_menu(self, restaurant_id: int, pos_type: Any, direction: str = MENU_FROM_POS) -> MenuSyncResult:
        """
        Synchronise the restaurant menu with the POS catalog.

        ``from_pos`` creates or updates local items from the catalog,
        ``to_pos`` sends the local items to the POS and ``both`` pulls
        first and then pushes the merged menu.
        """
        if direction not in MENU_DIRECTIONS:
            raise ValueError(f"Unknown menu sync direction: {direction}")
        integration_id = None
        details = {"restaurant_id": restaurant_id, "action": "menu_sync", "direction": direction}
        try:
            integration = self.get_active_integration(restaurant_id, pos_type)
            integration_id = integration.id
            adapter = self._adapter_for(integration)

            result = MenuSyncResult()
            if direction != MENU_TO_POS:
                with self._timed(integration.pos_type, "fetch_catalog"):
                    catalog = adapter.fetch_catalog()
                self._merge_catalog(restaurant_id, integration.pos_type, catalog, result)

            if direction != MENU_FROM_POS:
                self.db.flush()
                items = (
                    self.db.query(MenuItem)
                    .filter(MenuItem.restaurant_id == restaurant_id)
                    .order_by(MenuItem.id)
                    .all()
                )
                if items:
                    with self._timed(integration.pos_type, "push_menu"):
                        result.pushed_count = adapter.push_menu(items)

            self._log_success(POSSyncType.MENU, integration, {**details, **result.model_dump()})
            return result
        except Exception as e:
            logger.error(f"Menu sync with {pos_type} failed for restaurant {restaurant_id}: {e}")
            self._log_failure(POSSyncType.MENU, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=restaurant_id)
            raise

    def _merge_catalog(self, restaurant_id: int, pos_type: str, catalog, result: MenuSyncResult):
        for entry in catalog:
            try:
                with self.db.begin_nested():
                    item = (
                        self.db.query(MenuItem)
                        .filter(MenuItem.restaurant_id == restaurant_id,
                                MenuItem.pos_item_id == entry.pos_item_id)
                        .first()
                    )
                    if item is None:
                        self.db.add(MenuItem(
                            restaurant_id=restaurant_id,
                            pos_item_id=entry.pos_item_id,
                            name=entry.name,
                            description=entry.description,
                            price=entry.price,
                            is_available=entry.is_available,
                        ))
                        result.created_count += 1
                    else:
                        item.name = entry.name
                        item.description = entry.description
                        item.price = entry.price
                        item.is_available = entry.is_available
                        result.updated_count += 1
            except SQLAlchemyError as e:
                logger.warning(f"Menu item {entry.pos_item_id} from {pos_type} not saved: {e}")
                result.errors.append(f"{entry.pos_item_id}: {e}")

    def sync_menu_prices(self, restaurant_id: int, pos_type: Any) -> PriceSyncResult:
        """Copy POS prices onto mapped menu items; unknown POS items are skipped"""
        integration_id = None
        details = {"restaurant_id": restaurant_id, "action": "price_sync"}
        try:
            integration = self.get_active_integration(restaurant_id, pos_type)
            integration_id = integration.id
            with self._timed(integration.pos_type, "fetch_prices"):
                prices = self._adapter_for(integration).fetch_prices()

            items = {
                item.pos_item_id: item
                for item in self.db.query(MenuItem).filter(
                    MenuItem.restaurant_id == restaurant_id,
                    MenuItem.pos_item_id.in_(list(prices)),
                )
            }
            result = PriceSyncResult()
            for pos_item_id, price in prices.items():
                item = items.get(pos_item_id)
                if item is None:
                    result.skipped_count += 1
                elif Decimal(str(item.price)) == price:
                    result.unchanged_count += 1
                else:
                    logger.info(f"Menu item {item.id} price {item.price} -> {price} from {integration.pos_type}")
                    item.price = price
                    result.updated_count += 1

            self._log_success(POSSyncType.MENU, integration, {**details, **result.model_dump()})
            return result
        except Exception as e:
            logger.error(f"Price sync from {pos_type} failed for restaurant {restaurant_id}: {e}")
            self._log_failure(POSSyncType.MENU, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=restaurant_id)
            raise

    def sync_inventory(self, restaurant_id: int, pos_type: Any) -> InventorySyncResult:
        """Overwrite local stock with POS levels; unknown POS items are skipped"""
        integration_id = None
        details = {"restaurant_id": restaurant_id, "action": "inventory_sync"}
        try:
            integration = self.get_active_integration(restaurant_id, pos_type)
            integration_id = integration.id
            with self._timed(integration.pos_type, "fetch_inventory"):
                levels = self._adapter_for(integration).fetch_inventory()

            result = InventorySyncResult()
            for level in levels:
                try:
                    with self.db.begin_nested():
                        item = (
                            self.db.query(MenuItem)
                            .filter(MenuItem.restaurant_id == restaurant_id,
                                    MenuItem.pos_item_id == level.pos_item_id)
                            .first()
                        )
                        if item is None:
                            result.skipped_count += 1
                            continue
                        was_available = item.is_available
                        item.stock_quantity = level.quantity
                        item.is_available = level.quantity > 0
                        if was_available and not item.is_available:
                            result.out_of_stock.append({
                                "menu_item_id": item.id,
                                "pos_item_id": item.pos_item_id,
                                "name": item.name,
                            })
                        result.updated_count += 1
                except SQLAlchemyError as e:
                    logger.warning(f"Stock for {level.pos_item_id} from {integration.pos_type} not saved: {e}")
                    result.errors.append(f"{level.pos_item_id}: {e}")

            self._log_success(POSSyncType.INVENTORY, integration, {
                **details,
                "updated_count": result.updated_count,
                "skipped_count": result.skipped_count,
                "errors": result.errors,
                "out_of_stock": [item["pos_item_id"] for item in result.out_of_stock],
            })
        except Exception as e:
            logger.error(f"Inventory sync from {pos_type} failed for restaurant {restaurant_id}: {e}")
            self._log_failure(POSSyncType.INVENTORY, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=restaurant_id)
            raise

        if result.out_of_stock:
            try:
                self.notifier.send_out_of_stock_notice(restaurant_id, result.out_of_stock)
            except Exception as e:
                logger.error(f"Out-of-stock notice for restaurant {restaurant_id} failed: {e}")
        return result

    def sync_payment(self, payment, pos_type: Any) -> PaymentPushResult:
        """Record a captured payment against the order's POS counterpart"""
        integration_id = None
        restaurant_id = None
        details = {"payment_id": payment.id, "order_id": payment.order_id, "action": "payment_sync"}
        try:
            order = self.db.get(Order, payment.order_id)
            if order is None:
                raise OrderNotFoundError(payment.order_id)
            restaurant_id = order.restaurant_id

            integration = self.get_active_integration(order.restaurant_id, pos_type)
            integration_id = integration.id

            mapping = self.mappings.get_for_order(order.id, integration.pos_type)
            if mapping is None or mapping.sync_status != MappingSyncStatus.SYNCED.value or not mapping.pos_order_id:
                raise MappingNotFoundError(integration.pos_type, foodhub_order_id=order.id)

            with self._timed(integration.pos_type, "push_payment"):
                pos_payment_id = self._adapter_for(integration).push_payment(payment, mapping.pos_order_id)

            self._log_success(POSSyncType.PAYMENT, integration, {
                **details, "pos_order_id": mapping.pos_order_id, "pos_payment_id": pos_payment_id,
            })
            return PaymentPushResult(success=True, pos_payment_id=pos_payment_id)
        except Exception as e:
            logger.error(f"Payment {payment.id} sync to {pos_type} failed: {e}")
            self._log_failure(POSSyncType.PAYMENT, pos_type, e, details,
                              integration_id=integration_id, restaurant_id=restaurant_id)
            raise

    def test_connection(self, integration: POSIntegration) -> ConnectionTestResult:
        """Check the POS accepts the stored credentials; never raises for POS errors"""
        details = {"action": "test_connection"}
        try:
            adapter = self._adapter_for(integration)
            with self._timed(integration.pos_type, "test_connection"):
                adapter.check_connection()
        except POSSyncException as e:
            self._log_failure(POSSyncType.CONNECTION, integration.pos_type, e, details,
                              integration_id=integration.id, restaurant_id=integration.restaurant_id)
            return ConnectionTestResult(success=False, error=e.message)

        self._log_success(POSSyncType.CONNECTION, integration, details)
        return ConnectionTestResult(success=True)

    def handle_pos_disconnection(self, integration: POSIntegration, reason: str) -> None:
        """Deactivate an integration the POS no longer accepts and alert the restaurant"""
        integration.is_active = False
        self.mappings.log_sync(
            POSSyncType.CONNECTION.value,
            POSSyncStatus.FAILED.value,
            integration.pos_type,
            {"action": "disconnected", "reason": reason},
            integration_id=integration.id,
            restaurant_id=integration.restaurant_id,
        )
        self.db.commit()

        logger.warning(
            f"{integration.pos_type} integration {integration.id} for restaurant "
            f"{integration.restaurant_id} deactivated: {reason}"
        )
        self.audit_logger.log_security_event(
            event_type="pos_disconnected",
            severity="high",
            description=f"{integration.pos_type} integration deactivated: {reason}",
            metadata={"integration_id": integration.id, "restaurant_id": integration.restaurant_id},
        )
        try:
            self.notifier.send_pos_disconnection_alert(integration.restaurant_id, integration.pos_type, reason)
        except Exception as e:
            logger.error(f"POS disconnection alert for restaurant {integration.restaurant_id} failed: {e}")

    def get_integration_status(self, restaurant_id: int, pos_type: Any) -> IntegrationStatus:
        """Active flag, health record and recent sync counts for one integration"""
        vendor = self.adapter_factory.resolve_vendor(pos_type)
        integration = (
            self.db.query(POSIntegration)
            .filter(POSIntegration.restaurant_id == restaurant_id,
                    POSIntegration.pos_type == vendor.value)
            .first()
        )
        if integration is None:
            raise IntegrationNotFoundError(restaurant_id, vendor.value)

        since = datetime.utcnow() - self.STATUS_LOOKBACK
        counts = dict(
            self.db.query(POSSyncLog.status, func.count(POSSyncLog.id))
            .filter(POSSyncLog.integration_id == integration.id, POSSyncLog.synced_at >= since)
            .group_by(POSSyncLog.status)
            .all()
        )
        health = self.health_cache.get_status(vendor.value, restaurant_id)
        healthy = self.health_cache.is_healthy(vendor.value, restaurant_id)

        return IntegrationStatus(
            restaurant_id=restaurant_id,
            pos_type=vendor.value,
            is_active=integration.is_active,
            connected=bool(integration.is_active and healthy),
            last_sync_at=integration.last_sync_at,
            health=health,
            recent_successes=counts.get(POSSyncStatus.SUCCESS.value, 0),
            recent_failures=counts.get(POSSyncStatus.FAILED.value, 0),
        )
