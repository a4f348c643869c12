# backend/core/notification_service.py

from typing import Any, Dict, List, Optional
from decimal import Decimal
import logging

from .notification_adapter import (
    NotificationAdapter, NotificationMessage, NotificationPriority, LoggingAdapter
)


logger = logging.getLogger(__name__)


class NotificationService:
    """
    Domain notifications raised by payment webhooks and POS sync.

    Uses adapter pattern to support multiple notification channels
    """

    ADMIN_ROLE = "admin"

    def __init__(self, adapter: Optional[NotificationAdapter] = None):
        self._adapter = adapter or LoggingAdapter()

    def set_adapter(self, adapter: NotificationAdapter):
        """Set a custom notification adapter"""
        self._adapter = adapter

    def send_payment_confirmation(self, order) -> bool:
        return self._adapter.send_to_customer(order.id, NotificationMessage(
            subject="Payment received",
            message=f"We received your payment of {order.total_amount} for order #{order.id}.",
            metadata={"order_id": order.id},
        ))

    def send_order_confirmation(self, order) -> bool:
        return self._adapter.send_to_customer(order.id, NotificationMessage(
            subject="Order confirmed",
            message=f"Your order #{order.id} has been confirmed.",
            metadata={"order_id": order.id, "restaurant_id": order.restaurant_id},
        ))

    def send_order_status_update(self, order) -> bool:
        status = getattr(order.status, "value", order.status)
        return self._adapter.send_to_customer(order.id, NotificationMessage(
            subject="Order update",
            message=f"Your order #{order.id} is now {str(status).replace('_', ' ')}.",
            metadata={"order_id": order.id, "status": status},
        ))

    def send_payment_failure_notification(self, order, error_message: str) -> bool:
        return self._adapter.send_to_customer(order.id, NotificationMessage(
            subject="Payment failed",
            message=f"Payment for order #{order.id} failed: {error_message}",
            priority=NotificationPriority.HIGH,
            metadata={"order_id": order.id},
        ))

    def send_refund_notification(self, order, amount: Decimal) -> bool:
        return self._adapter.send_to_customer(order.id, NotificationMessage(
            subject="Refund processed",
            message=f"A refund of {amount} for order #{order.id} has been processed.",
            metadata={"order_id": order.id, "amount": str(amount)},
        ))

    def send_pos_disconnection_alert(self, restaurant_id: int, pos_type: str, reason: str) -> bool:
        return self._adapter.send_to_restaurant(restaurant_id, NotificationMessage(
            subject="POS disconnected",
            message=f"Your {pos_type} POS integration was disconnected: {reason}. "
                    f"Orders will not reach the POS until it is reconnected.",
            priority=NotificationPriority.URGENT,
            metadata={"restaurant_id": restaurant_id, "pos_type": pos_type},
        ))

    def send_out_of_stock_notice(self, restaurant_id: int, items: List[Dict[str, Any]]) -> bool:
        names = ", ".join(item["name"] for item in items)
        return self._adapter.send_to_restaurant(restaurant_id, NotificationMessage(
            subject="Items out of stock",
            message=f"{len(items)} menu item(s) are now unavailable: {names}",
            priority=NotificationPriority.HIGH,
            metadata={"restaurant_id": restaurant_id, "items": items},
        ))

    def send_webhook_failure_alert(self, service: str, error_message: str, metadata: Optional[Dict] = None) -> bool:
        return self._adapter.send_to_role(self.ADMIN_ROLE, NotificationMessage(
            subject=f"{service} webhook processing failed",
            message=error_message,
            priority=NotificationPriority.URGENT,
            metadata={"service": service, **(metadata or {})},
        ))
