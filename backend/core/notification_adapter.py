# backend/core/notification_adapter.py

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import logging


logger = logging.getLogger(__name__)


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class NotificationMessage:
    """A single notification, independent of the channel that delivers it"""

    subject: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationAdapter(ABC):
    """
    Delivery channel for payment and POS notifications.

    Customers are addressed through their order, restaurant staff through
    the restaurant and platform operators through a role name. Each method
    returns whether the channel accepted the message.
    """

    @abstractmethod
    def send_to_customer(self, order_id: int, message: NotificationMessage) -> bool:
        ...

    @abstractmethod
    def send_to_restaurant(self, restaurant_id: int, message: NotificationMessage) -> bool:
        ...

    @abstractmethod
    def send_to_role(self, role: str, message: NotificationMessage) -> bool:
        ...

    @abstractmethod
    def get_adapter_name(self) -> str:
        ...


class LoggingAdapter(NotificationAdapter):
    """Writes notifications to the application log; the default channel"""

    def __init__(self, log_level: int = logging.INFO):
        self.log_level = log_level

    def _emit(self, recipient: str, message: NotificationMessage, **context) -> bool:
        context.update(
            priority=message.priority.value,
            created_at=message.created_at.isoformat(),
            notification_metadata=message.metadata,
        )
        logger.log(
            self.log_level,
            f"[NOTIFICATION] To {recipient} - {message.subject}: {message.message}",
            extra=context,
        )
        return True

    def send_to_customer(self, order_id: int, message: NotificationMessage) -> bool:
        return self._emit(f"customer of order {order_id}", message, order_id=order_id)

    def send_to_restaurant(self, restaurant_id: int, message: NotificationMessage) -> bool:
        return self._emit(f"restaurant {restaurant_id}", message, restaurant_id=restaurant_id)

    def send_to_role(self, role: str, message: NotificationMessage) -> bool:
        return self._emit(f"role '{role}'", message, role=role)

    def get_adapter_name(self) -> str:
        return "logging"
