# backend/modules/pos/tasks/policies.py

"""
Retry and cache-lifetime policy for each kind of sync task.

All numbers come from ``Settings`` (``POS_<KIND>_SYNC_*``) so they can be
tuned per deployment.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.config import Settings, get_settings
from ..enums.pos_enums import SyncTaskKind


@dataclass(frozen=True)
class SyncPolicy:
    kind: SyncTaskKind
    task_name: str
    queue: str
    max_attempts: int
    backoff: Tuple[int, ...]
    timeout_seconds: int
    health_ttl_seconds: int
    success_ttl_seconds: int
    failure_ttl_seconds: int
    exhausted_ttl_seconds: int
    health_cooldown_seconds: int
    escalated_cooldown_seconds: Optional[int] = None
    # Skip work already confirmed by a success key
    dedupe_on_success: bool = True

    def countdown_for(self, attempt: int) -> int:
        """Delay before the attempt after ``attempt`` (1-based); clamps to the last entry"""
        index = min(max(attempt, 1) - 1, len(self.backoff) - 1)
        return self.backoff[index]

    def is_final(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    @property
    def max_retries(self) -> int:
        return self.max_attempts - 1


_TASKS: Dict[SyncTaskKind, Tuple[str, str, str, bool]] = {
    # kind: (settings prefix, celery task name, queue, dedupe_on_success)
    SyncTaskKind.ORDER_CREATE: ("POS_ORDER_SYNC", "pos.sync_order_to_pos", "high", True),
    SyncTaskKind.ORDER_STATUS: ("POS_STATUS_SYNC", "pos.sync_order_status_from_pos", "high", True),
    SyncTaskKind.PAYMENT: ("POS_PAYMENT_SYNC", "pos.sync_payment_to_pos", "high", True),
    SyncTaskKind.INVENTORY: ("POS_INVENTORY_SYNC", "pos.sync_inventory_from_pos", "default", False),
    SyncTaskKind.MENU: ("POS_MENU_SYNC", "pos.sync_menu_from_pos", "low", False),
}


def get_policy(kind: SyncTaskKind, settings: Optional[Settings] = None) -> SyncPolicy:
    settings = settings or get_settings()
    prefix, task_name, queue, dedupe = _TASKS[kind]

    def value(name: str):
        return getattr(settings, f"{prefix}_{name}")

    escalated = None
    if kind == SyncTaskKind.ORDER_CREATE:
        escalated = settings.POS_HEALTH_ESCALATED_COOLDOWN_SECONDS

    return SyncPolicy(
        kind=kind,
        task_name=task_name,
        queue=queue,
        max_attempts=value("MAX_ATTEMPTS"),
        backoff=tuple(value("BACKOFF")),
        timeout_seconds=value("TIMEOUT_SECONDS"),
        health_ttl_seconds=value("HEALTH_TTL_SECONDS"),
        success_ttl_seconds=value("SUCCESS_TTL_SECONDS"),
        failure_ttl_seconds=value("FAILURE_TTL_SECONDS"),
        exhausted_ttl_seconds=value("EXHAUSTED_TTL_SECONDS"),
        health_cooldown_seconds=settings.POS_HEALTH_COOLDOWN_SECONDS,
        escalated_cooldown_seconds=escalated,
        dedupe_on_success=dedupe,
    )


def task_routes() -> Dict[str, Dict[str, str]]:
    """Celery routing table: each task to its priority lane"""
    return {task_name: {"queue": queue} for _, task_name, queue, _ in _TASKS.values()}
