# backend/tests/factories/utils.py

from typing import Dict, Optional
from .restaurant import RestaurantFactory
from .menu import MenuItemFactory
from .order import OrderWithItemsFactory
from .payment import PaymentFactory
from .pos import POSIntegrationFactory


def create_pos_setup(
    pos_type: str = "square",
    configuration: Optional[Dict] = None,
    num_menu_items: int = 2,
) -> Dict:
    """
    Create a restaurant wired to a POS, with menu items and one order.

    Returns:
        Dict containing all created objects
    """
    restaurant = RestaurantFactory()
    kwargs = {"restaurant": restaurant, "pos_type": pos_type}
    if configuration is not None:
        kwargs["configuration"] = configuration
    integration = POSIntegrationFactory(**kwargs)

    menu_items = [
        MenuItemFactory(restaurant=restaurant, pos_item_id=f"{pos_type.upper()}-ITEM-{i + 1}")
        for i in range(num_menu_items)
    ]
    order = OrderWithItemsFactory(restaurant=restaurant)

    return {
        "restaurant": restaurant,
        "integration": integration,
        "menu_items": menu_items,
        "order": order,
    }


def create_payment_scenario(gateway: str = "mada", transaction_id: Optional[str] = None, **kwargs) -> Dict:
    """Order awaiting a gateway payment confirmation."""
    payment_kwargs = {"gateway": gateway}
    if transaction_id:
        payment_kwargs["transaction_id"] = transaction_id
    payment_kwargs.update(kwargs)
    payment = PaymentFactory(**payment_kwargs)
    return {"payment": payment, "order": payment.order}
