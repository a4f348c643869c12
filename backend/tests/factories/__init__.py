# backend/tests/factories/__init__.py

"""
Shared test factories for the POS sync backend.

These factories provide reusable test data generation for all modules.
"""

from .base import BaseFactory
from .restaurant import RestaurantFactory
from .menu import MenuItemFactory
from .order import OrderFactory, OrderItemFactory, OrderWithItemsFactory
from .payment import PaymentFactory
from .pos import POSIntegrationFactory, POSOrderMappingFactory
from .utils import create_pos_setup, create_payment_scenario

__all__ = [
    # Base
    'BaseFactory',

    # Domain
    'RestaurantFactory',
    'MenuItemFactory',
    'OrderFactory',
    'OrderItemFactory',
    'OrderWithItemsFactory',
    'PaymentFactory',

    # POS
    'POSIntegrationFactory',
    'POSOrderMappingFactory',

    # Utils
    'create_pos_setup',
    'create_payment_scenario',
]
