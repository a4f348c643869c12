# backend/tests/factories/menu.py

from decimal import Decimal
from factory import Faker, Sequence, SubFactory
from .base import BaseFactory
from .restaurant import RestaurantFactory
from core.menu_models import MenuItem


class MenuItemFactory(BaseFactory):
    """Factory for creating menu items linked to a POS catalog entry."""

    class Meta:
        model = MenuItem

    restaurant = SubFactory(RestaurantFactory)
    name = Faker("catch_phrase")
    description = Faker("sentence")
    price = Decimal("9.99")

    pos_item_id = Sequence(lambda n: f"ITEM-{n}")
    stock_quantity = 10
    is_available = True
