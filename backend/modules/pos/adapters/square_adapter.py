import hashlib
import json
from typing import Dict, Any, List, Optional
from .base_adapter import BasePOSAdapter
from modules.orders.enums.order_enums import OrderStatus
from ..enums.pos_enums import POSVendor
from ..schemas.pos_schemas import CatalogItem, InventoryLevel


class SquareAdapter(BasePOSAdapter):
    pos_type = POSVendor.SQUARE
    health_path = "/v2/locations"
    status_map = {
        "DRAFT": OrderStatus.PENDING,
        "OPEN": OrderStatus.PENDING,
        "PROPOSED": OrderStatus.CONFIRMED,
        "RESERVED": OrderStatus.PREPARING,
        "PREPARED": OrderStatus.READY_FOR_PICKUP,
        "COMPLETED": OrderStatus.COMPLETED,
        "CANCELED": OrderStatus.CANCELLED,
        "CANCELLED": OrderStatus.CANCELLED,
    }

    def transform_order_data(self, order) -> Dict[str, Any]:
        square_order: Dict[str, Any] = {
            "reference_id": str(order.id),
            "line_items": [
                {
                    "name": item.name,
                    "quantity": str(item.quantity),
                    "base_price_money": {
                        "amount": self.to_minor_units(item.price),
                        "currency": self.currency,
                    },
                    "note": item.notes or "",
                }
                for item in order.order_items
            ],
            "fulfillments": [{"type": "PICKUP", "state": "PROPOSED"}],
        }
        location_id = self.configuration.get("location_id")
        if location_id:
            square_order["location_id"] = location_id

        # Same key on every retry so Square never creates the order twice
        return {
            "idempotency_key": f"foodhub-order-{order.id}",
            "order": square_order,
        }

    def push_order(self, order) -> str:
        data = self._request("POST", "/v2/orders", json=self.transform_order_data(order))
        return self._require_id((data.get("order") or {}).get("id"), "order.id")

    def push_payment(self, payment, pos_order_id: str) -> str:
        payload = {
            "idempotency_key": f"foodhub-payment-{payment.id}",
            "source_id": "EXTERNAL",
            "order_id": pos_order_id,
            "reference_id": payment.transaction_id,
            "amount_money": {
                "amount": self.to_minor_units(payment.amount),
                "currency": payment.currency or self.currency,
            },
        }
        data = self._request("POST", "/v2/payments", json=payload)
        return self._require_id((data.get("payment") or {}).get("id"), "payment.id")

    def fetch_order_status(self, pos_order_id: str) -> Optional[str]:
        data = self._request("GET", f"/v2/orders/{pos_order_id}")
        with self._parsing("order"):
            return (data.get("order") or {}).get("state")

    def push_menu(self, menu_items: List[Any]) -> int:
        objects = [
            {
                "type": "ITEM",
                # Square assigns real ids to '#'-prefixed temporary ones
                "id": item.pos_item_id or f"#foodhub-item-{item.id}",
                "item_data": {
                    "name": item.name,
                    "description": item.description or "",
                    "variations": [{
                        "type": "ITEM_VARIATION",
                        "id": f"#foodhub-variation-{item.id}",
                        "item_variation_data": {
                            "name": "Regular",
                            "pricing_type": "FIXED_PRICING",
                            "price_money": {"amount": self.to_minor_units(item.price), "currency": self.currency},
                            "sellable": bool(item.is_available),
                        },
                    }],
                },
            }
            for item in menu_items
        ]
        # Resending an unchanged menu reuses the key, so Square applies it once
        digest = hashlib.sha256(json.dumps(objects, sort_keys=True).encode("utf-8")).hexdigest()
        data = self._request("POST", "/v2/catalog/batch-upsert", json={
            "idempotency_key": f"foodhub-menu-{digest[:40]}",
            "batches": [{"objects": objects}],
        })
        return len(data.get("objects") or objects)

    def fetch_catalog(self) -> List[CatalogItem]:
        data = self._request("GET", "/catalog")
        items = []
        with self._parsing("catalog"):
            for obj in data.get("objects", []):
                if obj.get("type") != "ITEM" or not obj.get("id"):
                    continue
                item_data = obj.get("item_data") or {}
                variations = item_data.get("variations") or [{}]
                price_money = (variations[0].get("item_variation_data") or {}).get("price_money") or {}
                items.append(CatalogItem(
                    pos_item_id=str(obj["id"]),
                    name=item_data.get("name") or str(obj["id"]),
                    description=item_data.get("description"),
                    price=self.to_decimal(price_money.get("amount", 0)) / 100,
                ))
        return items

    def fetch_inventory(self) -> List[InventoryLevel]:
        data = self._request("GET", "/catalog", params={"include_inventory": "true"})
        levels = []
        with self._parsing("inventory"):
            for count in data.get("counts", []):
                if not count.get("catalog_object_id"):
                    continue
                # Square reports quantities as decimal strings
                levels.append(InventoryLevel(
                    pos_item_id=str(count["catalog_object_id"]),
                    quantity=int(self.to_decimal(count.get("quantity", 0))),
                ))
        return levels
