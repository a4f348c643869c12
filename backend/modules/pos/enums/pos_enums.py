from enum import Enum


class POSVendor(str, Enum):
    SQUARE = "square"
    TOAST = "toast"
    LOCAL = "local"


class POSSyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class POSSyncType(str, Enum):
    ORDER = "order"
    MENU = "menu"
    INVENTORY = "inventory"
    PAYMENT = "payment"
    CONNECTION = "connection"


class MappingSyncStatus(str, Enum):
    SYNCED = "synced"
    PENDING = "pending"
    FAILED = "failed"


class SyncTaskKind(str, Enum):
    ORDER_CREATE = "order"
    ORDER_STATUS = "status"
    PAYMENT = "payment"
    INVENTORY = "inventory"
    MENU = "menu"


class SyncTaskOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    DISCARDED = "discarded"
    RETRY = "retry"
    FAILED = "failed"
