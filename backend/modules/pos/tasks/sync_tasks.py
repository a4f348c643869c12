# backend/modules/pos/tasks/sync_tasks.py

"""
Celery tasks for outbound POS synchronization.

Each task builds a ``SyncJob`` for its kind and hands one attempt to
``SyncTaskRunner``; retries are scheduled with the countdown the runner
picks from the task's backoff table.
"""

from celery import Task
from celery.utils.log import get_task_logger
from typing import Any, Dict, Optional

from .celery_config import celery_app
from core.audit_logger import audit_logger
from core.cache import SyncCache, get_cache
from core.database import SessionLocal
from ..enums.pos_enums import SyncTaskKind
from ..services.connection_health import ConnectionHealthCache
from ..services.pos_integration_service import POSIntegrationService, MENU_FROM_POS
from .policies import get_policy
from .sync_jobs import (
    OrderCreateJob,
    OrderStatusJob,
    PaymentSyncJob,
    InventorySyncJob,
    MenuSyncJob,
)
from .sync_runner import SyncJob, SyncRetry, SyncTaskRunner, sync_key

logger = get_task_logger(__name__)


class DatabaseTask(Task):
    """Base task with database session management."""

    def __init__(self):
        self._db = None

    @property
    def db(self):
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


def build_service(db, cache: SyncCache) -> POSIntegrationService:
    return POSIntegrationService(db, health_cache=ConnectionHealthCache(cache))


def run_sync(task, kind: SyncTaskKind, job: SyncJob, cache: Optional[SyncCache] = None) -> Dict[str, Any]:
    """One attempt of ``job``; schedules the next one through ``task.retry``"""
    policy = get_policy(kind)
    attempt = task.request.retries + 1
    runner = SyncTaskRunner(policy, job, cache or get_cache(), audit_logger)
    try:
        result = runner.run(attempt)
    except SyncRetry as retry:
        raise task.retry(exc=retry.cause, countdown=retry.countdown, max_retries=policy.max_retries)
    return result.model_dump(mode="json")


_ORDER = get_policy(SyncTaskKind.ORDER_CREATE)
_STATUS = get_policy(SyncTaskKind.ORDER_STATUS)
_PAYMENT = get_policy(SyncTaskKind.PAYMENT)
_INVENTORY = get_policy(SyncTaskKind.INVENTORY)
_MENU = get_policy(SyncTaskKind.MENU)


@celery_app.task(
    bind=True, base=DatabaseTask, name=_ORDER.task_name, max_retries=_ORDER.max_retries,
    time_limit=_ORDER.timeout_seconds, soft_time_limit=_ORDER.timeout_seconds - 10,
)
def sync_order_to_pos(self, order_id: int, pos_type: str):
    """Create the order in the restaurant's POS"""
    cache = get_cache()
    job = OrderCreateJob(self.db, build_service(self.db, cache), order_id, pos_type)
    return run_sync(self, SyncTaskKind.ORDER_CREATE, job, cache)


@celery_app.task(
    bind=True, base=DatabaseTask, name=_STATUS.task_name, max_retries=_STATUS.max_retries,
    time_limit=_STATUS.timeout_seconds, soft_time_limit=_STATUS.timeout_seconds - 10,
)
def sync_order_status_from_pos(self, pos_order_id: str, pos_type: str, gateway_status: str):
    """Apply a POS-reported status to the platform order"""
    cache = get_cache()
    job = OrderStatusJob(self.db, build_service(self.db, cache), pos_order_id, pos_type, gateway_status)
    return run_sync(self, SyncTaskKind.ORDER_STATUS, job, cache)


@celery_app.task(
    bind=True, base=DatabaseTask, name=_PAYMENT.task_name, max_retries=_PAYMENT.max_retries,
    time_limit=_PAYMENT.timeout_seconds, soft_time_limit=_PAYMENT.timeout_seconds - 10,
)
def sync_payment_to_pos(self, payment_id: int, pos_type: str):
    """Record a captured payment in the POS"""
    cache = get_cache()
    job = PaymentSyncJob(self.db, build_service(self.db, cache), payment_id, pos_type)
    return run_sync(self, SyncTaskKind.PAYMENT, job, cache)


@celery_app.task(
    bind=True, base=DatabaseTask, name=_INVENTORY.task_name, max_retries=_INVENTORY.max_retries,
    time_limit=_INVENTORY.timeout_seconds, soft_time_limit=_INVENTORY.timeout_seconds - 10,
)
def sync_inventory_from_pos(self, restaurant_id: int, pos_type: str):
    """Pull stock levels from the POS"""
    cache = get_cache()
    job = InventorySyncJob(self.db, build_service(self.db, cache), restaurant_id, pos_type)
    return run_sync(self, SyncTaskKind.INVENTORY, job, cache)


@celery_app.task(
    bind=True, base=DatabaseTask, name=_MENU.task_name, max_retries=_MENU.max_retries,
    time_limit=_MENU.timeout_seconds, soft_time_limit=_MENU.timeout_seconds - 10,
)
def sync_menu_from_pos(self, restaurant_id: int, pos_type: str, direction: str = MENU_FROM_POS):
    """Pull the menu from the POS catalog, optionally pushing it back"""
    cache = get_cache()
    job = MenuSyncJob(self.db, build_service(self.db, cache), restaurant_id, pos_type, direction=direction)
    return run_sync(self, SyncTaskKind.MENU, job, cache)


# Dispatch helpers

def _already_synced(kind: SyncTaskKind, pos_type: str, dedupe_id: Any, cache: Optional[SyncCache]) -> bool:
    cache = cache or get_cache()
    key = sync_key("pos.sync.success", kind, getattr(pos_type, "value", pos_type), dedupe_id)
    if cache.get(key) is not None:
        logger.info(f"Not dispatching {kind.value} sync {dedupe_id} to {pos_type}: already synced")
        return True
    return False


def dispatch_order_sync(order_id: int, pos_type: str, cache: Optional[SyncCache] = None):
    if _already_synced(SyncTaskKind.ORDER_CREATE, pos_type, order_id, cache):
        return None
    return sync_order_to_pos.apply_async(args=[order_id, getattr(pos_type, "value", pos_type)], queue=_ORDER.queue)


def dispatch_status_sync(pos_order_id: str, pos_type: str, gateway_status: str,
                         cache: Optional[SyncCache] = None):
    dedupe_id = f"{pos_order_id}.{str(gateway_status).strip().upper()}"
    if _already_synced(SyncTaskKind.ORDER_STATUS, pos_type, dedupe_id, cache):
        return None
    return sync_order_status_from_pos.apply_async(
        args=[str(pos_order_id), getattr(pos_type, "value", pos_type), gateway_status], queue=_STATUS.queue
    )


def dispatch_payment_sync(payment_id: int, pos_type: str, cache: Optional[SyncCache] = None):
    if _already_synced(SyncTaskKind.PAYMENT, pos_type, payment_id, cache):
        return None
    return sync_payment_to_pos.apply_async(args=[payment_id, getattr(pos_type, "value", pos_type)], queue=_PAYMENT.queue)


def dispatch_inventory_sync(restaurant_id: int, pos_type: str):
    return sync_inventory_from_pos.apply_async(
        args=[restaurant_id, getattr(pos_type, "value", pos_type)], queue=_INVENTORY.queue
    )


def dispatch_menu_sync(restaurant_id: int, pos_type: str, direction: str = MENU_FROM_POS):
    return sync_menu_from_pos.apply_async(
        args=[restaurant_id, getattr(pos_type, "value", pos_type), direction], queue=_MENU.queue
    )
