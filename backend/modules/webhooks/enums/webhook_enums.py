from enum import Enum


class PaymentWebhookGateway(str, Enum):
    MADA = "mada"
    STC_PAY = "stc_pay"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"


class WebhookPaymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class WebhookEventType(str, Enum):
    """Event types kept as separate statistics rows; anything else counts as payment_update"""
    PAYMENT_UPDATE = "payment_update"
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"
