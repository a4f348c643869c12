# backend/tests/factories/payment.py

from factory import Sequence, SubFactory, LazyAttribute
from .base import BaseFactory
from .order import OrderFactory
from modules.payments.models.payment_models import Payment, PaymentStatus


class PaymentFactory(BaseFactory):
    """Factory for creating gateway payments awaiting confirmation."""

    class Meta:
        model = Payment

    order = SubFactory(OrderFactory)
    gateway = "mada"
    transaction_id = Sequence(lambda n: f"TX-{n:05d}")
    amount = LazyAttribute(lambda obj: obj.order.total_amount)
    currency = "USD"
    status = PaymentStatus.PENDING.value
