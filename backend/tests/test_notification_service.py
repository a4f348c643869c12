"""
Tests for the notifications raised by payment webhooks and POS sync
"""

import logging
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock

from core.notification_adapter import LoggingAdapter, NotificationPriority
from core.notification_service import NotificationService


def sent(adapter_method):
    return adapter_method.call_args.args


class TestNotificationService:

    def setup_method(self):
        self.adapter = Mock()
        self.adapter.send_to_customer.return_value = True
        self.adapter.send_to_restaurant.return_value = True
        self.adapter.send_to_role.return_value = True
        self.service = NotificationService(self.adapter)
        self.order = SimpleNamespace(id=123, restaurant_id=7, total_amount=Decimal("25.50"))

    def test_payment_confirmation_goes_to_customer(self):
        assert self.service.send_payment_confirmation(self.order) is True

        order_id, message = sent(self.adapter.send_to_customer)
        assert order_id == 123
        assert "25.50" in message.message

    def test_failure_notification_is_high_priority(self):
        self.service.send_payment_failure_notification(self.order, "Card declined")

        _, message = sent(self.adapter.send_to_customer)
        assert message.priority == NotificationPriority.HIGH
        assert "Card declined" in message.message

    def test_refund_notification_carries_amount(self):
        self.service.send_refund_notification(self.order, Decimal("10.00"))

        _, message = sent(self.adapter.send_to_customer)
        assert message.metadata["amount"] == "10.00"

    def test_disconnection_alert_goes_to_restaurant(self):
        self.service.send_pos_disconnection_alert(7, "square", "token revoked")

        restaurant_id, message = sent(self.adapter.send_to_restaurant)
        assert restaurant_id == 7
        assert message.priority == NotificationPriority.URGENT
        assert "token revoked" in message.message

    def test_out_of_stock_notice_lists_items(self):
        self.service.send_out_of_stock_notice(7, [{"name": "Fries"}, {"name": "Shake"}])

        _, message = sent(self.adapter.send_to_restaurant)
        assert "Fries, Shake" in message.message

    def test_webhook_failure_alert_goes_to_admins(self):
        self.service.send_webhook_failure_alert("mada", "bad payload", metadata={"event_type": "payment_update"})

        role, message = sent(self.adapter.send_to_role)
        assert role == "admin"
        assert message.metadata == {"service": "mada", "event_type": "payment_update"}


class TestLoggingAdapter:

    def test_default_adapter_logs(self, caplog):
        service = NotificationService()

        with caplog.at_level(logging.INFO, logger="core.notification_adapter"):
            assert service.send_pos_disconnection_alert(7, "toast", "401 from POS") is True

        assert "[NOTIFICATION] To restaurant 7 - POS disconnected" in caplog.text
        assert LoggingAdapter().get_adapter_name() == "logging"
