# backend/modules/webhooks/services/payment_webhook_service.py

"""
Inbound payment-gateway webhooks.

A webhook moves a payment (and its order) to the state the gateway
reports. Transitions are compare-and-set updates, so a redelivered
webhook finds the payment already moved and becomes a no-op. Every call,
accepted or not, leaves exactly one ``WebhookLog`` row and one statistics
increment behind.
"""

import json
import logging
import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.audit_logger import AuditLogger, audit_logger as default_audit_logger
from core.notification_service import NotificationService
from core.security_config import sanitize_log_data
from modules.loyalty.services.order_integration import OrderLoyaltyIntegration
from modules.orders.enums.order_enums import OrderStatus, OrderPaymentStatus
from modules.orders.models.order_models import Order
from modules.payments.models.payment_models import Payment, PaymentStatus
from modules.pos.services.sync_metrics import SyncMetrics
from ..enums.webhook_enums import (
    PaymentWebhookGateway,
    WebhookEventType,
    WebhookPaymentStatus,
    WebhookOutcome,
)
from ..exceptions import (
    WebhookException,
    UnsupportedWebhookGatewayException,
    InvalidWebhookSignatureException,
    MalformedWebhookPayloadError,
)
from ..models.webhook_models import WebhookLog
from ..schemas.webhook_schemas import WebhookResult
from .signature_verifiers import SignatureVerifier, build_verifiers
from .webhook_stats_service import WebhookStatsService

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = WebhookEventType.PAYMENT_UPDATE.value
# Statistics and metrics bucket shared by every unknown gateway name
UNSUPPORTED_GATEWAY = "unsupported"

# Payment states each reported status may move from
ALLOWED_SOURCES = {
    WebhookPaymentStatus.SUCCESS: (
        PaymentStatus.PENDING.value,
        PaymentStatus.PROCESSING.value,
        PaymentStatus.FAILED.value,
    ),
    WebhookPaymentStatus.FAILED: (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value),
    WebhookPaymentStatus.REFUNDED: (
        PaymentStatus.PENDING.value,
        PaymentStatus.PROCESSING.value,
        PaymentStatus.COMPLETED.value,
    ),
}

SideEffect = Callable[[Order], None]


class PaymentWebhookService:

    def __init__(
        self,
        db: Session,
        verifiers: Optional[Dict[PaymentWebhookGateway, SignatureVerifier]] = None,
        notifier: Optional[NotificationService] = None,
        loyalty: Optional[OrderLoyaltyIntegration] = None,
        audit_logger: Optional[AuditLogger] = None,
        stats_service: Optional[WebhookStatsService] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.db = db
        self.verifiers = verifiers if verifiers is not None else build_verifiers()
        self.notifier = notifier or NotificationService()
        self.loyalty = loyalty or OrderLoyaltyIntegration()
        self.audit_logger = audit_logger or default_audit_logger
        self.stats_service = stats_service or WebhookStatsService(db)
        self.clock = clock or time.monotonic

    def handle_payment_webhook(
        self,
        gateway: str,
        raw_body: Union[str, bytes],
        signature: Optional[str],
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> WebhookResult:
        """
        Verify and apply one payment webhook.

        Args:
            gateway: Gateway name (mada, stc_pay, apple_pay, google_pay)
            raw_body: Body exactly as received; the signature covers these bytes
            signature: Signature header value
            source_ip: Caller address, logged and passed to security events
            user_agent: Caller user agent, logged

        Returns:
            WebhookResult describing what happened to the payment

        Raises:
            UnsupportedWebhookGatewayException: Unknown gateway
            InvalidWebhookSignatureException: Signature did not verify
            MalformedWebhookPayloadError: Body is not a usable payment event
        """
        started = self.clock()
        service = str(getattr(gateway, "value", gateway))
        payload = self._parse(raw_body)
        # Unverified bodies never choose the statistics row
        event_type = DEFAULT_EVENT_TYPE

        def finish(success: bool, verified: bool, error: Optional[str] = None,
                   stats_bucket: Optional[str] = None) -> int:
            elapsed_ms = int(round((self.clock() - started) * 1000))
            self._record(service, event_type, payload, raw_body, success, verified,
                         elapsed_ms, error, source_ip, user_agent, stats_bucket=stats_bucket)
            return elapsed_ms

        try:
            gateway_enum = PaymentWebhookGateway(service)
        except ValueError:
            error = UnsupportedWebhookGatewayException(service)
            logger.warning(f"Webhook received for unsupported gateway {service!r}")
            finish(False, False, error.message, stats_bucket=UNSUPPORTED_GATEWAY)
            SyncMetrics.record_webhook(UNSUPPORTED_GATEWAY, "unsupported", 0.0)
            raise error

        verifier = self.verifiers.get(gateway_enum)
        if verifier is None or not verifier.verify(raw_body, signature):
            error = InvalidWebhookSignatureException(service, event_type)
            logger.warning(f"Invalid {service} webhook signature from {source_ip or 'unknown'}")
            elapsed_ms = finish(False, False, error.message)
            self.audit_logger.log_security_event(
                event_type="invalid_webhook_signature",
                severity="high",
                description=f"Invalid {service} webhook signature",
                client_ip=source_ip,
                metadata={"service": service, "event_type": event_type, "user_agent": user_agent},
            )
            SyncMetrics.record_webhook(service, "invalid_signature", elapsed_ms / 1000)
            raise error

        event_type = self._event_type(payload)
        try:
            if payload is None:
                raise MalformedWebhookPayloadError(service, "body is not a JSON object", event_type)
            outcome, payment, side_effects = self._apply(service, payload)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            message = e.message if isinstance(e, WebhookException) else str(e)
            logger.error(f"Error processing {service} webhook: {message}")
            elapsed_ms = finish(False, True, message)
            self._send_failure_alert(service, message, event_type, payload)
            SyncMetrics.record_webhook(service, "failed", elapsed_ms / 1000)
            raise

        if side_effects:
            order = self.db.get(Order, payment.order_id)
            if order is None:
                logger.warning(f"Order {payment.order_id} for payment {payment.id} is gone, skipping post-payment steps")
            else:
                for effect in side_effects:
                    self._run_side_effect(effect, order)

        elapsed_ms = finish(True, True)
        SyncMetrics.record_webhook(service, outcome.value, elapsed_ms / 1000)
        logger.info(f"{service} webhook for {payload.get('transaction_id')} {outcome.value}")

        return WebhookResult(
            gateway=service,
            event_type=event_type,
            outcome=outcome,
            transaction_id=str(payload.get("transaction_id")),
            payment_id=payment.id if payment is not None else None,
            payment_status=payment.status if payment is not None else None,
            response_time_ms=elapsed_ms,
        )

    # Payload

    def _parse(self, raw_body: Union[str, bytes]) -> Optional[Dict[str, Any]]:
        try:
            payload = json.loads(raw_body)
        except (ValueError, TypeError):
            return None
        return payload if isinstance(payload, dict) else None

    def _event_type(self, payload: Optional[Dict[str, Any]]) -> str:
        if payload:
            reported = payload.get("event_type") or payload.get("type")
            try:
                return WebhookEventType(reported).value
            except ValueError:
                pass
        return DEFAULT_EVENT_TYPE

    def _amount(self, service: str, payload: Dict[str, Any], default: Decimal) -> Decimal:
        raw = payload.get("amount")
        if raw is None:
            return default
        try:
            amount = Decimal(str(raw))
        except InvalidOperation:
            raise MalformedWebhookPayloadError(service, f"invalid amount {raw!r}")
        if not amount.is_finite() or amount < 0:
            raise MalformedWebhookPayloadError(service, f"invalid amount {raw!r}")
        return amount

    # Transitions

    def _apply(self, service: str, payload: Dict[str, Any]) -> Tuple[WebhookOutcome, Optional[Payment], List[SideEffect]]:
        transaction_id = payload.get("transaction_id")
        reported = payload.get("status")
        if not transaction_id or not reported:
            raise MalformedWebhookPayloadError(service, "transaction_id and status are required")

        transaction_id = str(transaction_id)
        payment = self.db.query(Payment).filter(Payment.transaction_id == transaction_id).first()
        if payment is None:
            logger.warning(f"{service} webhook for unknown transaction {transaction_id}, skipping")
            return WebhookOutcome.SKIPPED, None, []

        try:
            status = WebhookPaymentStatus(str(reported).lower())
        except ValueError:
            logger.warning(f"{service} webhook reported unhandled status {reported!r} for {transaction_id}")
            return WebhookOutcome.IGNORED, payment, []

        handlers = {
            WebhookPaymentStatus.SUCCESS: self._mark_completed,
            WebhookPaymentStatus.FAILED: self._mark_failed,
            WebhookPaymentStatus.REFUNDED: self._mark_refunded,
        }
        side_effects = handlers[status](service, payment, payload)
        if side_effects is None:
            logger.info(f"Payment {payment.id} already moved past {payment.status}, duplicate {service} webhook")
            return WebhookOutcome.DUPLICATE, payment, []

        self.db.flush()
        self.db.refresh(payment)
        return WebhookOutcome.PROCESSED, payment, side_effects

    def _transition(self, payment: Payment, status: WebhookPaymentStatus, values: Dict[str, Any]) -> bool:
        """Compare-and-set: only one webhook can move the payment out of its current state"""
        result = self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status.in_(ALLOWED_SOURCES[status]))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _update_order(self, order_id: int, values: Dict[str, Any]) -> None:
        self.db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def _mark_completed(self, service: str, payment: Payment, payload: Dict[str, Any]) -> Optional[List[SideEffect]]:
        now = datetime.utcnow()
        amount = self._amount(service, payload, payment.amount)
        if not self._transition(payment, WebhookPaymentStatus.SUCCESS, {
            "status": PaymentStatus.COMPLETED.value,
            "amount": amount,
            "processed_at": now,
            "failure_message": None,
        }):
            return None

        self._update_order(payment.order_id, {
            "payment_status": OrderPaymentStatus.PAID.value,
            "status": OrderStatus.CONFIRMED.value,
            "confirmed_at": now,
        })

        def award_points(order: Order) -> None:
            self.loyalty.process_order_payment(order)

        def audit(order: Order) -> None:
            self.audit_logger.log_operation(
                operation_type="payment_completed",
                status="success",
                description=f"{service} payment {payment.transaction_id} completed",
                metadata={"order_id": order.id, "payment_id": payment.id, "amount": str(amount)},
            )

        return [
            award_points,
            self.notifier.send_payment_confirmation,
            self.notifier.send_order_confirmation,
            audit,
        ]

    def _mark_failed(self, service: str, payment: Payment, payload: Dict[str, Any]) -> Optional[List[SideEffect]]:
        now = datetime.utcnow()
        message = str(payload.get("error_message") or payload.get("message") or "Payment failed")
        if not self._transition(payment, WebhookPaymentStatus.FAILED, {
            "status": PaymentStatus.FAILED.value,
            "failure_message": message,
        }):
            return None

        self._update_order(payment.order_id, {
            "payment_status": OrderPaymentStatus.FAILED.value,
            "status": OrderStatus.CANCELLED.value,
            "cancelled_at": now,
            "cancellation_reason": f"Payment failed: {message}",
        })

        def notify(order: Order) -> None:
            self.notifier.send_payment_failure_notification(order, message)

        def audit(order: Order) -> None:
            self.audit_logger.log_operation(
                operation_type="payment_failed",
                status="failed",
                description=f"{service} payment {payment.transaction_id} failed",
                metadata={"order_id": order.id, "payment_id": payment.id, "reason": message},
            )

        return [notify, audit]

    def _mark_refunded(self, service: str, payment: Payment, payload: Dict[str, Any]) -> Optional[List[SideEffect]]:
        now = datetime.utcnow()
        amount = self._amount(service, payload, payment.amount)
        if not self._transition(payment, WebhookPaymentStatus.REFUNDED, {
            "status": PaymentStatus.REFUNDED.value,
            "refund_amount": amount,
            "refunded_at": now,
        }):
            return None

        self._update_order(payment.order_id, {
            "payment_status": OrderPaymentStatus.REFUNDED.value,
            "refund_amount": amount,
            "refunded_at": now,
        })

        def notify(order: Order) -> None:
            self.notifier.send_refund_notification(order, amount)

        def audit(order: Order) -> None:
            self.audit_logger.log_operation(
                operation_type="payment_refunded",
                status="success",
                description=f"{service} payment {payment.transaction_id} refunded",
                metadata={"order_id": order.id, "payment_id": payment.id, "amount": str(amount)},
            )

        return [notify, audit]

    # Bookkeeping

    def _run_side_effect(self, effect: SideEffect, order: Order) -> None:
        # The payment is already committed; a failing notification must not undo it
        try:
            effect(order)
        except Exception as e:
            logger.error(f"Post-payment step {getattr(effect, '__name__', effect)} failed for order {order.id}: {e}")

    def _record(
        self,
        service: str,
        event_type: str,
        payload: Optional[Dict[str, Any]],
        raw_body: Union[str, bytes],
        success: bool,
        signature_verified: bool,
        response_time_ms: int,
        error: Optional[str],
        source_ip: Optional[str],
        user_agent: Optional[str],
        stats_bucket: Optional[str] = None,
    ) -> None:
        if payload is not None:
            logged_payload = sanitize_log_data(payload)
        else:
            logged_payload = {"unparsed": True, "length": len(raw_body or b"")}

        try:
            self.db.add(WebhookLog(
                service=service[:50],
                event_type=event_type,
                payload=logged_payload,
                success=success,
                ip_address=source_ip,
                user_agent=user_agent[:500] if user_agent else None,
                signature_verified=signature_verified,
                response_time_ms=response_time_ms,
                error_message=error,
            ))
            self.stats_service.record(stats_bucket or service, event_type, success, response_time_ms)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record {service} webhook: {e}")

    def _send_failure_alert(self, service: str, message: str, event_type: str,
                            payload: Optional[Dict[str, Any]]) -> None:
        try:
            self.notifier.send_webhook_failure_alert(service, message, metadata={
                "event_type": event_type,
                "transaction_id": (payload or {}).get("transaction_id"),
            })
        except Exception as e:
            logger.error(f"Failed to send webhook failure alert: {e}")
