# backend/modules/payments/models/__init__.py

from .payment_models import PaymentStatus, Payment

__all__ = [
    "PaymentStatus",
    "Payment",
]
