from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime
from decimal import Decimal
from ..enums.pos_enums import SyncTaskKind, SyncTaskOutcome


class CatalogItem(BaseModel):
    """Menu entry as reported by a POS catalog"""
    pos_item_id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    is_available: bool = True


class InventoryLevel(BaseModel):
    pos_item_id: str
    quantity: int


class OrderPushResult(BaseModel):
    success: bool
    pos_order_id: Optional[str] = None
    error: Optional[str] = None


class PaymentPushResult(BaseModel):
    success: bool
    pos_payment_id: Optional[str] = None
    error: Optional[str] = None


class StatusUpdateResult(BaseModel):
    order_id: int
    status: str
    changed: bool = True


class MenuSyncResult(BaseModel):
    created_count: int = 0
    updated_count: int = 0
    pushed_count: int = 0
    errors: List[str] = Field(default_factory=list)


class PriceSyncResult(BaseModel):
    updated_count: int = 0
    unchanged_count: int = 0
    skipped_count: int = 0



class InventorySyncResult(BaseModel):
    updated_count: int = 0
    skipped_count: int = 0
    errors: List[str] = Field(default_factory=list)
    out_of_stock: List[Dict[str, Any]] = Field(default_factory=list)


class ConnectionTestResult(BaseModel):
    success: bool
    error: Optional[str] = None


class IntegrationStatus(BaseModel):
    restaurant_id: int
    pos_type: str
    is_active: bool
    connected: bool
    last_sync_at: Optional[datetime] = None
    health: Optional[Dict[str, Any]] = None
    recent_successes: int = 0
    recent_failures: int = 0


class SyncTaskResult(BaseModel):
    """What a sync task reports back to Celery"""
    kind: SyncTaskKind
    outcome: SyncTaskOutcome
    attempt: int
    entity_id: Any
    pos_type: str
    detail: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    countdown: Optional[int] = None
