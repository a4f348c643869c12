from .pos_integration import POSIntegration
from .pos_order_mapping import POSOrderMapping
from .pos_sync_log import POSSyncLog

__all__ = ["POSIntegration", "POSOrderMapping", "POSSyncLog"]
