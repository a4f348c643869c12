from decimal import Decimal
from typing import Dict, Any, List, Optional
from .base_adapter import BasePOSAdapter
from modules.orders.enums.order_enums import OrderStatus
from ..enums.pos_enums import POSVendor
from ..schemas.pos_schemas import CatalogItem, InventoryLevel


class LocalPOSAdapter(BasePOSAdapter):
    """In-store POS speaking the platform's own vocabulary over a small REST API"""

    pos_type = POSVendor.LOCAL
    token_key = "api_key"
    health_path = "/health"
    status_map = {status.value: status for status in OrderStatus}
    status_map["ready"] = OrderStatus.READY_FOR_PICKUP

    def normalize_status(self, gateway_status: str) -> str:
        return gateway_status.strip().lower()

    def transform_order_data(self, order) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "customer_info": {
                "name": order.customer_name,
                "phone": order.customer_phone,
                "email": order.customer_email,
            },
            "order_items": [
                {
                    "item_id": (item.menu_item.pos_item_id if item.menu_item and item.menu_item.pos_item_id
                                else item.menu_item_id),
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": self.to_amount(item.price),
                    "special_instructions": item.notes or "",
                }
                for item in order.order_items
            ],
            "order_total": self.to_amount(order.total_amount),
            "special_instructions": order.notes or "",
        }

    def push_order(self, order) -> str:
        data = self._request("POST", "/orders", json=self.transform_order_data(order))
        return self._require_id(data.get("pos_order_id"), "pos_order_id")

    def push_payment(self, payment, pos_order_id: str) -> str:
        payload = {
            "pos_order_id": pos_order_id,
            "transaction_id": payment.transaction_id,
            "amount": self.to_amount(payment.amount),
            "currency": payment.currency or self.currency,
            "status": payment.status,
        }
        data = self._request("POST", "/payments", json=payload)
        return self._require_id(data.get("pos_payment_id") or data.get("payment_id"), "pos_payment_id")

    def fetch_order_status(self, pos_order_id: str) -> Optional[str]:
        data = self._request("GET", f"/orders/{pos_order_id}")
        return data.get("status")

    def push_menu(self, menu_items: List[Any]) -> int:
        payload = {
            "items": [
                {
                    "item_id": item.id,
                    "pos_item_id": item.pos_item_id,
                    "name": item.name,
                    "description": item.description,
                    "price": self.to_amount(item.price),
                    "is_available": bool(item.is_available),
                }
                for item in menu_items
            ]
        }
        data = self._request("POST", "/menu/sync", json=payload)
        with self._parsing("menu sync response"):
            return int(data.get("synced_count", len(payload["items"])))

    def fetch_catalog(self) -> List[CatalogItem]:
        data = self._request("GET", "/menu")
        with self._parsing("menu"):
            return [
                CatalogItem(
                    pos_item_id=str(item["item_id"]),
                    name=item.get("name") or str(item["item_id"]),
                    description=item.get("description"),
                    price=self.to_decimal(item.get("price", 0)),
                    is_available=bool(item.get("is_available", True)),
                )
                for item in data.get("items", [])
                if item.get("item_id") is not None
            ]

    def fetch_prices(self) -> Dict[str, Decimal]:
        data = self._request("GET", "/menu/prices")
        with self._parsing("prices"):
            return {str(item_id): self.to_decimal(price) for item_id, price in (data.get("prices") or {}).items()}

    def fetch_inventory(self) -> List[InventoryLevel]:
        data = self._request("GET", "/inventory")
        with self._parsing("inventory"):
            return [
                InventoryLevel(pos_item_id=str(item["item_id"]), quantity=int(item.get("stock_quantity") or 0))
                for item in data.get("items", [])
                if item.get("item_id") is not None
            ]
