# backend/modules/payments/__init__.py

from .models import PaymentStatus, Payment

__all__ = [
    "PaymentStatus",
    "Payment",
]
