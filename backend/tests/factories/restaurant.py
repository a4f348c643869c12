# backend/tests/factories/restaurant.py

from factory import Faker
from .base import BaseFactory
from core.restaurant_models import Restaurant


class RestaurantFactory(BaseFactory):
    """Factory for creating restaurants."""

    class Meta:
        model = Restaurant

    name = Faker("company")
    is_active = True
