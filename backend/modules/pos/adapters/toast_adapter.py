from typing import Dict, Any, List, Optional
from .base_adapter import BasePOSAdapter
from modules.orders.enums.order_enums import OrderStatus
from ..enums.pos_enums import POSVendor
from ..schemas.pos_schemas import CatalogItem, InventoryLevel


class ToastAdapter(BasePOSAdapter):
    pos_type = POSVendor.TOAST
    health_path = "/restaurants"
    status_map = {
        "NEW": OrderStatus.PENDING,
        "APPROVED": OrderStatus.CONFIRMED,
        "IN_PROGRESS": OrderStatus.PREPARING,
        "READY": OrderStatus.READY_FOR_PICKUP,
        "OUT_FOR_DELIVERY": OrderStatus.OUT_FOR_DELIVERY,
        "DELIVERED": OrderStatus.DELIVERED,
        "CLOSED": OrderStatus.COMPLETED,
        "COMPLETED": OrderStatus.COMPLETED,
        "VOIDED": OrderStatus.CANCELLED,
        "CANCELLED": OrderStatus.CANCELLED,
    }

    def transform_order_data(self, order) -> Dict[str, Any]:
        return {
            "orderNumber": str(order.id),
            "customer": {
                "name": order.customer_name,
                "phone": order.customer_phone,
                "email": order.customer_email,
            },
            "items": [
                {
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": self.to_amount(item.price),
                    "notes": item.notes or "",
                }
                for item in order.order_items
            ],
            "total": self.to_amount(order.total_amount),
            "notes": order.notes or "",
        }

    def push_order(self, order) -> str:
        data = self._request("POST", "/orders", json=self.transform_order_data(order))
        return self._require_id(data.get("guid") or data.get("id"), "guid")

    def push_payment(self, payment, pos_order_id: str) -> str:
        payload = {
            "paymentType": "OTHER",
            "amount": self.to_amount(payment.amount),
            "tipAmount": 0,
            "externalReferenceId": payment.transaction_id,
        }
        data = self._request("POST", f"/orders/{pos_order_id}/payments", json=payload)
        return self._require_id(data.get("guid") or data.get("id"), "guid")

    def fetch_order_status(self, pos_order_id: str) -> Optional[str]:
        data = self._request("GET", f"/orders/{pos_order_id}")
        return data.get("status") or data.get("approvalStatus")

    def push_menu(self, menu_items: List[Any]) -> int:
        payload = {
            "items": [
                {
                    "guid": item.pos_item_id,
                    "externalId": str(item.id),
                    "name": item.name,
                    "description": item.description or "",
                    "price": self.to_amount(item.price),
                    "visible": bool(item.is_available),
                }
                for item in menu_items
            ]
        }
        data = self._request("POST", "/menu/sync", json=payload)
        with self._parsing("menu sync response"):
            return int(data.get("syncedCount", len(payload["items"])))

    def fetch_catalog(self) -> List[CatalogItem]:
        data = self._request("GET", "/menu")
        with self._parsing("menu"):
            return [
                CatalogItem(
                    pos_item_id=str(item["guid"]),
                    name=item.get("name") or str(item["guid"]),
                    description=item.get("description"),
                    price=self.to_decimal(item.get("price", 0)),
                )
                for item in data.get("items", [])
                if item.get("guid")
            ]

    def fetch_inventory(self) -> List[InventoryLevel]:
        data = self._request("GET", "/inventory")
        with self._parsing("inventory"):
            return [
                InventoryLevel(pos_item_id=str(item["guid"]), quantity=int(item.get("quantity") or 0))
                for item in data.get("items", [])
                if item.get("guid")
            ]
