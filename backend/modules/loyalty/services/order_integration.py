# backend/modules/loyalty/services/order_integration.py

from decimal import Decimal, ROUND_DOWN
from typing import Dict, Any
import logging


logger = logging.getLogger(__name__)


class OrderLoyaltyIntegration:
    """
    Awards loyalty points when an order's payment is confirmed.

    Point balances live with the loyalty program; this integration only
    computes the award and hands it over. Override ``credit_points`` to
    persist elsewhere.
    """

    POINTS_PER_CURRENCY_UNIT = 1

    def calculate_points(self, order) -> int:
        amount = Decimal(str(order.total_amount or 0))
        return int((amount * self.POINTS_PER_CURRENCY_UNIT).to_integral_value(rounding=ROUND_DOWN))

    def credit_points(self, customer_id: int, points: int, order_id: int) -> None:
        logger.info(f"Credited {points} loyalty points to customer {customer_id} for order {order_id}")

    def process_order_payment(self, order) -> Dict[str, Any]:
        """Award points for a paid order; guest orders earn nothing"""
        if order.customer_id is None:
            logger.debug(f"Order {order.id} has no customer, skipping loyalty points")
            return {"success": True, "points_earned": 0}

        points = self.calculate_points(order)
        if points > 0:
            self.credit_points(order.customer_id, points, order.id)
        return {"success": True, "points_earned": points}
