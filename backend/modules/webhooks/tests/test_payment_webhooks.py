# backend/modules/webhooks/tests/test_payment_webhooks.py

import json
import logging
from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy import delete

from core.audit_logger import RecordingAuditLogger
from modules.orders.models.order_models import Order
from modules.payments.models.payment_models import Payment
from modules.webhooks.enums.webhook_enums import PaymentWebhookGateway, WebhookOutcome
from modules.webhooks.exceptions import (
    InvalidWebhookSignatureException,
    MalformedWebhookPayloadError,
    UnsupportedWebhookGatewayException,
)
from modules.webhooks.models import WebhookLog, WebhookStatistics
from modules.webhooks.services.payment_webhook_service import PaymentWebhookService
from modules.webhooks.services.signature_verifiers import (
    HmacHexVerifier,
    HmacBase64Verifier,
    MerchantKeyDigestVerifier,
)
from modules.webhooks.services.webhook_stats_service import WebhookStatsService
from tests.factories import create_payment_scenario


class SteppingClock:
    """Monotonic clock advancing a fixed step on every read."""

    def __init__(self, step=0.05):
        self.step = step
        self.value = 0.0

    def __call__(self):
        current = self.value
        self.value += self.step
        return current


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def loyalty():
    return Mock()


@pytest.fixture
def audit():
    return RecordingAuditLogger()


@pytest.fixture
def verifiers():
    return {
        PaymentWebhookGateway.MADA: HmacHexVerifier(PaymentWebhookGateway.MADA, "mada-secret"),
        PaymentWebhookGateway.STC_PAY: MerchantKeyDigestVerifier(PaymentWebhookGateway.STC_PAY, "stc-key"),
        PaymentWebhookGateway.APPLE_PAY: HmacBase64Verifier(PaymentWebhookGateway.APPLE_PAY, "apple-secret"),
        PaymentWebhookGateway.GOOGLE_PAY: HmacHexVerifier(PaymentWebhookGateway.GOOGLE_PAY, None),
    }


@pytest.fixture
def service(db_session, verifiers, notifier, loyalty, audit):
    return PaymentWebhookService(
        db_session,
        verifiers=verifiers,
        notifier=notifier,
        loyalty=loyalty,
        audit_logger=audit,
        clock=SteppingClock(),
    )


@pytest.fixture
def deliver(service, verifiers):
    """Send a correctly signed webhook."""

    def send(payload, gateway=PaymentWebhookGateway.MADA, **kwargs):
        body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        signature = verifiers[gateway].sign(body)
        return service.handle_payment_webhook(gateway.value, body, signature, **kwargs)

    return send


def stats(db_session, service="mada", event_type="payment_update"):
    return WebhookStatsService(db_session).get(service, event_type)


def reload(db_session, model, pk):
    db_session.expire_all()
    return db_session.get(model, pk)


class TestSuccessfulPayment:

    def test_completes_payment_and_confirms_order(self, db_session, deliver, notifier, loyalty, audit):
        scenario = create_payment_scenario(transaction_id="TX-100")
        payment_id, order_id = scenario["payment"].id, scenario["order"].id

        result = deliver({"transaction_id": "TX-100", "status": "success", "amount": "25.50"})

        assert result.outcome == WebhookOutcome.PROCESSED
        assert result.payment_status == "completed"
        payment = reload(db_session, Payment, payment_id)
        assert payment.status == "completed"
        assert payment.processed_at is not None
        order = db_session.get(Order, order_id)
        assert order.payment_status == "paid"
        assert order.status == "confirmed"
        assert order.confirmed_at is not None

        loyalty.process_order_payment.assert_called_once()
        notifier.send_payment_confirmation.assert_called_once()
        notifier.send_order_confirmation.assert_called_once()
        assert audit.operations[0]["operation_type"] == "payment_completed"

    def test_credentials_never_reach_logs(self, db_session, deliver, caplog):
        create_payment_scenario(transaction_id="TX-107")

        with caplog.at_level(logging.DEBUG, logger="modules.webhooks"):
            deliver({"transaction_id": "TX-107", "status": "success",
                     "token": "tok_live_93xk", "card": {"cvv": "4929"}})

        log = db_session.query(WebhookLog).one()
        assert log.payload["token"] == "[REDACTED]"
        assert log.payload["card"]["cvv"] == "[REDACTED]"
        assert "tok_live_93xk" not in json.dumps(log.payload)
        assert "tok_live_93xk" not in caplog.text
        assert "4929" not in caplog.text

    def test_deleted_order_skips_post_payment_steps(self, db_session, deliver, notifier, loyalty):
        scenario = create_payment_scenario(transaction_id="TX-108")
        db_session.execute(delete(Order).where(Order.id == scenario["order"].id))
        db_session.commit()
        db_session.expunge_all()

        result = deliver({"transaction_id": "TX-108", "status": "success"})

        assert result.outcome == WebhookOutcome.PROCESSED
        loyalty.process_order_payment.assert_not_called()
        notifier.send_payment_confirmation.assert_not_called()
        assert db_session.query(WebhookLog).one().success is True
        assert stats(db_session).successful_processed == 1

    def test_redelivery_is_a_duplicate(self, db_session, deliver, notifier, loyalty):
        create_payment_scenario(transaction_id="TX-101")
        payload = {"transaction_id": "TX-101", "status": "success"}

        first = deliver(payload)
        second = deliver(payload)

        assert first.outcome == WebhookOutcome.PROCESSED
        assert second.outcome == WebhookOutcome.DUPLICATE
        loyalty.process_order_payment.assert_called_once()
        notifier.send_payment_confirmation.assert_called_once()
        assert db_session.query(WebhookLog).count() == 2
        assert stats(db_session).successful_processed == 2

    def test_failed_payment_can_still_succeed(self, db_session, deliver):
        scenario = create_payment_scenario(transaction_id="TX-102", status="failed")

        assert deliver({"transaction_id": "TX-102", "status": "success"}).outcome == WebhookOutcome.PROCESSED
        assert reload(db_session, Payment, scenario["payment"].id).status == "completed"

    def test_status_is_case_insensitive(self, deliver):
        create_payment_scenario(transaction_id="TX-103")

        assert deliver({"transaction_id": "TX-103", "status": "SUCCESS"}).outcome == WebhookOutcome.PROCESSED

    def test_notification_failure_does_not_undo_payment(self, db_session, deliver, notifier, loyalty):
        scenario = create_payment_scenario(transaction_id="TX-104")
        notifier.send_payment_confirmation.side_effect = RuntimeError("mail server down")

        result = deliver({"transaction_id": "TX-104", "status": "success"})

        assert result.outcome == WebhookOutcome.PROCESSED
        assert reload(db_session, Payment, scenario["payment"].id).status == "completed"
        notifier.send_order_confirmation.assert_called_once()
        assert stats(db_session).successful_processed == 1

    def test_other_gateway_schemes(self, db_session, deliver):
        create_payment_scenario(gateway="stc_pay", transaction_id="TX-105")
        create_payment_scenario(gateway="apple_pay", transaction_id="TX-106")

        assert deliver({"transaction_id": "TX-105", "status": "success"},
                       gateway=PaymentWebhookGateway.STC_PAY).outcome == WebhookOutcome.PROCESSED
        assert deliver({"transaction_id": "TX-106", "status": "success"},
                       gateway=PaymentWebhookGateway.APPLE_PAY).outcome == WebhookOutcome.PROCESSED


class TestFailedAndRefunded:

    def test_failure_cancels_order(self, db_session, deliver, notifier):
        scenario = create_payment_scenario(transaction_id="TX-200")

        result = deliver({"transaction_id": "TX-200", "status": "failed", "error_message": "Card declined"})

        assert result.outcome == WebhookOutcome.PROCESSED
        payment = reload(db_session, Payment, scenario["payment"].id)
        assert payment.status == "failed"
        assert payment.failure_message == "Card declined"
        order = db_session.get(Order, scenario["order"].id)
        assert order.status == "cancelled"
        assert order.payment_status == "failed"
        assert order.cancellation_reason == "Payment failed: Card declined"
        notifier.send_payment_failure_notification.assert_called_once()
        assert notifier.send_payment_failure_notification.call_args.args[1] == "Card declined"

    def test_failure_message_defaults(self, db_session, deliver):
        scenario = create_payment_scenario(transaction_id="TX-201")

        deliver({"transaction_id": "TX-201", "status": "failed"})

        assert reload(db_session, Payment, scenario["payment"].id).failure_message == "Payment failed"

    def test_completed_payment_cannot_fail(self, db_session, deliver, notifier):
        scenario = create_payment_scenario(transaction_id="TX-202", status="completed")

        result = deliver({"transaction_id": "TX-202", "status": "failed"})

        assert result.outcome == WebhookOutcome.DUPLICATE
        assert reload(db_session, Payment, scenario["payment"].id).status == "completed"
        notifier.send_payment_failure_notification.assert_not_called()

    def test_refund_records_amount(self, db_session, deliver, notifier):
        scenario = create_payment_scenario(transaction_id="TX-203", status="completed")

        result = deliver({"transaction_id": "TX-203", "status": "refunded", "amount": "10.00"})

        assert result.outcome == WebhookOutcome.PROCESSED
        payment = reload(db_session, Payment, scenario["payment"].id)
        assert payment.status == "refunded"
        assert payment.refund_amount == Decimal("10.00")
        order = db_session.get(Order, scenario["order"].id)
        assert order.payment_status == "refunded"
        assert order.refund_amount == Decimal("10.00")
        notifier.send_refund_notification.assert_called_once()
        assert notifier.send_refund_notification.call_args.args[1] == Decimal("10.00")

    def test_refund_defaults_to_full_amount(self, db_session, deliver):
        scenario = create_payment_scenario(transaction_id="TX-204", status="completed")

        deliver({"transaction_id": "TX-204", "status": "refunded"})

        assert reload(db_session, Payment, scenario["payment"].id).refund_amount == Decimal("25.50")

    def test_refunded_payment_cannot_complete(self, db_session, deliver):
        create_payment_scenario(transaction_id="TX-205", status="refunded")

        assert deliver({"transaction_id": "TX-205", "status": "success"}).outcome == WebhookOutcome.DUPLICATE


class TestUnprocessable:

    def test_unknown_transaction_is_skipped(self, db_session, deliver, notifier):
        result = deliver({"transaction_id": "TX-UNKNOWN", "status": "success"})

        assert result.outcome == WebhookOutcome.SKIPPED
        assert result.payment_id is None
        row = stats(db_session)
        assert row.total_received == 1
        assert row.successful_processed == 1
        notifier.send_webhook_failure_alert.assert_not_called()

    def test_unhandled_status_is_ignored(self, db_session, deliver):
        scenario = create_payment_scenario(transaction_id="TX-300")

        result = deliver({"transaction_id": "TX-300", "status": "chargeback"})

        assert result.outcome == WebhookOutcome.IGNORED
        assert reload(db_session, Payment, scenario["payment"].id).status == "pending"

    def test_unparseable_body_alerts_and_raises(self, db_session, deliver, notifier):
        with pytest.raises(MalformedWebhookPayloadError):
            deliver(b"not json at all")

        log = db_session.query(WebhookLog).one()
        assert log.success is False
        assert log.signature_verified is True
        assert log.payload == {"unparsed": True, "length": 15}
        assert stats(db_session).failed_processed == 1
        notifier.send_webhook_failure_alert.assert_called_once()

    def test_missing_fields_alert_and_raise(self, db_session, deliver, notifier):
        with pytest.raises(MalformedWebhookPayloadError):
            deliver({"status": "success"})

        notifier.send_webhook_failure_alert.assert_called_once()
        assert notifier.send_webhook_failure_alert.call_args.args[0] == "mada"

    def test_negative_amount_rolls_back(self, db_session, deliver):
        scenario = create_payment_scenario(transaction_id="TX-301")

        with pytest.raises(MalformedWebhookPayloadError):
            deliver({"transaction_id": "TX-301", "status": "success", "amount": "-1"})

        assert reload(db_session, Payment, scenario["payment"].id).status == "pending"
        assert db_session.query(WebhookLog).one().success is False

    def test_unsupported_gateway(self, db_session, service):
        with pytest.raises(UnsupportedWebhookGatewayException):
            service.handle_payment_webhook("paypal", "{}", "sig")

        log = db_session.query(WebhookLog).one()
        assert (log.service, log.success) == ("paypal", False)
        assert stats(db_session, service="paypal") is None
        assert stats(db_session, service="unsupported").failed_processed == 1

    def test_unknown_gateway_names_share_one_statistics_row(self, db_session, service):
        for name in ("paypal", "venmo", "x" * 40):
            with pytest.raises(UnsupportedWebhookGatewayException):
                service.handle_payment_webhook(name, "{}", "sig")

        rows = db_session.query(WebhookStatistics).all()
        assert [(row.service, row.total_received) for row in rows] == [("unsupported", 3)]


class TestSignatureRejection:

    def test_bad_signature_is_logged_and_rejected(self, db_session, service, notifier, audit):
        scenario = create_payment_scenario(transaction_id="TX-400")
        body = json.dumps({"transaction_id": "TX-400", "status": "success", "card_number": "4111111111111111"})

        with pytest.raises(InvalidWebhookSignatureException) as exc_info:
            service.handle_payment_webhook("mada", body, "deadbeef", source_ip="203.0.113.9", user_agent="curl/8")

        assert exc_info.value.status_code == 401
        assert reload(db_session, Payment, scenario["payment"].id).status == "pending"

        log = db_session.query(WebhookLog).one()
        assert log.success is False
        assert log.signature_verified is False
        assert log.ip_address == "203.0.113.9"
        assert log.payload["card_number"] == "[REDACTED]"
        assert stats(db_session).failed_processed == 1

        event = audit.security_events[0]
        assert event["event_type"] == "invalid_webhook_signature"
        assert event["severity"] == "high"
        assert event["client_ip"] == "203.0.113.9"
        notifier.send_webhook_failure_alert.assert_not_called()

    def test_missing_signature(self, service):
        with pytest.raises(InvalidWebhookSignatureException):
            service.handle_payment_webhook("mada", "{}", None)

    def test_unconfigured_secret_fails_closed(self, db_session, service):
        create_payment_scenario(gateway="google_pay", transaction_id="TX-401")

        with pytest.raises(InvalidWebhookSignatureException):
            service.handle_payment_webhook("google_pay", '{"transaction_id":"TX-401","status":"success"}', "anything")


class TestStatistics:

    def test_running_average_and_rates(self, db_session, service, deliver):
        create_payment_scenario(transaction_id="TX-500")
        deliver({"transaction_id": "TX-500", "status": "success"})
        deliver({"transaction_id": "TX-500", "status": "success"})
        with pytest.raises(InvalidWebhookSignatureException):
            service.handle_payment_webhook("mada", "{}", "bad")

        row = stats(db_session)
        assert row.total_received == 3
        assert row.successful_processed == 2
        assert row.failed_processed == 1
        assert row.success_rate == 66.67
        assert row.failure_rate == 33.33
        assert row.last_received_at is not None

        durations = [log.response_time_ms for log in db_session.query(WebhookLog).order_by(WebhookLog.id)]
        assert row.average_response_time_ms == pytest.approx(sum(durations) / 3)

    def test_counters_split_by_event_type(self, db_session, deliver):
        create_payment_scenario(transaction_id="TX-501")

        deliver({"transaction_id": "TX-501", "status": "success", "event_type": "payment.captured"})
        deliver({"transaction_id": "TX-501", "status": "refunded", "event_type": "payment.refunded"})

        listed = WebhookStatsService(db_session).get_statistics(service="mada")
        assert [(row.event_type, row.total_received) for row in listed] == [
            ("payment.captured", 1),
            ("payment.refunded", 1),
        ]

    def test_unsigned_requests_cannot_choose_event_type(self, db_session, service):
        for i in range(5):
            body = json.dumps({"transaction_id": "TX-502", "status": "success", "event_type": f"junk-{i}"})
            with pytest.raises(InvalidWebhookSignatureException):
                service.handle_payment_webhook("mada", body, "bad")

        listed = WebhookStatsService(db_session).get_statistics(service="mada")
        assert [(row.event_type, row.failed_processed) for row in listed] == [("payment_update", 5)]
        assert {log.event_type for log in db_session.query(WebhookLog)} == {"payment_update"}

    def test_unlisted_event_type_counts_as_payment_update(self, db_session, deliver):
        create_payment_scenario(transaction_id="TX-503")

        result = deliver({"transaction_id": "TX-503", "status": "success", "event_type": "charge.whatever"})

        assert result.event_type == "payment_update"
        assert stats(db_session).successful_processed == 1
        assert stats(db_session, event_type="charge.whatever") is None

    def test_empty_statistics_rates(self, db_session):
        row = WebhookStatistics(service="mada", event_type="payment_update", total_received=0,
                                successful_processed=0, failed_processed=0)
        assert row.success_rate == 0.0
        assert row.failure_rate == 0.0
