# backend/modules/loyalty/__init__.py

"""
Loyalty points awarded on confirmed payments.
"""

from .services.order_integration import OrderLoyaltyIntegration

__all__ = ["OrderLoyaltyIntegration"]
