# backend/modules/pos/tasks/sync_runner.py

"""
Attempt-level decision logic shared by every sync task.

``SyncTaskRunner.run(attempt)`` performs one attempt and either returns a
``SyncTaskResult`` or raises ``SyncRetry`` carrying the countdown for the
next attempt. Celery only translates ``SyncRetry`` into ``self.retry``.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from core.audit_logger import AuditLogger
from core.cache import SyncCache, CacheLockError
from core.config import settings
from ..enums.pos_enums import SyncTaskKind, SyncTaskOutcome
from ..exceptions import (
    POSSyncException,
    POSTransientError,
    POSTransportError,
    POSResponseError,
    POSConnectionUnavailableError,
    SyncLockBusyError,
)
from ..schemas.pos_schemas import SyncTaskResult
from ..services.connection_health import ConnectionHealthCache
from ..services.sync_metrics import SyncMetrics
from .policies import SyncPolicy

logger = logging.getLogger(__name__)

# Failures that say something about the POS connection itself
CONNECTION_ERRORS = (POSTransportError, POSResponseError)


def sync_key(prefix: str, kind: SyncTaskKind, pos_type: str, entity_id: Any) -> str:
    return f"{prefix}.{kind.value}.{pos_type}.{entity_id}"


class DiscardTask(Exception):
    """The entities the task refers to no longer exist; drop it"""


class SyncRetry(Exception):
    """Another attempt should run after ``countdown`` seconds"""

    def __init__(self, cause: Exception, countdown: int, result: SyncTaskResult):
        super().__init__(str(cause))
        self.cause = cause
        self.countdown = countdown
        self.result = result


class SyncJob(ABC):
    """The kind-specific part of a sync task"""

    pos_type: str

    @abstractmethod
    def load(self) -> None:
        """Load referenced entities; raise DiscardTask if any is gone"""

    @property
    @abstractmethod
    def entity_id(self) -> Any:
        """Identifier used for the failure key and the per-kind lock"""

    @property
    def dedupe_id(self) -> Any:
        """Identifier used for the success key"""
        return self.entity_id

    @property
    @abstractmethod
    def restaurant_id(self) -> Any:
        """Restaurant whose POS connection the job uses"""

    @property
    def order_lock_id(self) -> Any:
        """Order whose syncs must not overlap; None locks per job kind"""
        return None

    @abstractmethod
    def execute(self) -> Dict[str, Any]:
        """Perform the sync; return details for the success record"""

    def on_exhausted(self, error: Exception) -> None:
        """Hook run once the task gives up"""


class SyncTaskRunner:

    def __init__(
        self,
        policy: SyncPolicy,
        job: SyncJob,
        cache: SyncCache,
        audit_logger: AuditLogger,
        health_cache: Optional[ConnectionHealthCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.policy = policy
        self.job = job
        self.cache = cache
        self.audit_logger = audit_logger
        self.clock = clock or time.time
        self.health_cache = health_cache or ConnectionHealthCache(cache, clock=self.clock)

    # Cache keys

    def _key(self, prefix: str, entity_id: Any) -> str:
        return sync_key(prefix, self.policy.kind, self.job.pos_type, entity_id)

    @property
    def success_key(self) -> str:
        return self._key("pos.sync.success", self.job.dedupe_id)

    @property
    def failed_key(self) -> str:
        return self._key("pos.sync.failed", self.job.entity_id)

    @property
    def lock_name(self) -> str:
        order_id = self.job.order_lock_id
        if order_id is not None:
            # Create, status and payment syncs of one order share a lock
            return f"pos.lock.order.{self.job.pos_type}.{order_id}"
        return self._key("pos.lock", self.job.entity_id)

    def _result(self, outcome: SyncTaskOutcome, attempt: int, **kwargs) -> SyncTaskResult:
        SyncMetrics.record_outcome(self.policy.kind.value, str(self.job.pos_type), outcome.value)
        return SyncTaskResult(
            kind=self.policy.kind,
            outcome=outcome,
            attempt=attempt,
            entity_id=self.job.entity_id,
            pos_type=str(self.job.pos_type),
            **kwargs,
        )

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat()

    # Attempt

    def run(self, attempt: int) -> SyncTaskResult:
        kind = self.policy.kind.value
        SyncMetrics.record_attempt(kind, str(self.job.pos_type))

        try:
            self.job.load()
        except DiscardTask as e:
            logger.warning(f"Discarding {kind} sync to {self.job.pos_type}: {e}")
            return self._result(SyncTaskOutcome.DISCARDED, attempt, error=str(e))
        except SQLAlchemyError as e:
            error = POSTransientError(f"Database error: {e}", error_code="DATABASE_ERROR")
            return self._handle_failure(error, attempt)
        except Exception as e:
            return self._handle_failure(self._unexpected(e), attempt)

        if self.policy.dedupe_on_success and self.cache.get(self.success_key) is not None:
            logger.info(f"{kind} sync {self.job.dedupe_id} to {self.job.pos_type} already done, skipping")
            return self._result(SyncTaskOutcome.SKIPPED, attempt)

        logger.info(f"{kind} sync {self.job.entity_id} via {self.job.pos_type}, attempt {attempt}/{self.policy.max_attempts}")
        try:
            with self.cache.lock(
                self.lock_name,
                ttl=settings.POS_SYNC_LOCK_TTL_SECONDS,
                blocking_timeout=settings.POS_SYNC_LOCK_WAIT_SECONDS,
            ):
                detail = self._attempt()
        except CacheLockError:
            return self._handle_failure(SyncLockBusyError(self.lock_name), attempt)
        except POSSyncException as e:
            return self._handle_failure(e, attempt)
        except SQLAlchemyError as e:
            error = POSTransientError(f"Database error: {e}", error_code="DATABASE_ERROR")
            return self._handle_failure(error, attempt)
        except Exception as e:
            return self._handle_failure(self._unexpected(e), attempt)

        self.cache.set(
            self.success_key,
            {"synced_at": self._now_iso(), "attempt": attempt, **detail},
            ttl=self.policy.success_ttl_seconds,
        )
        self.cache.delete(self.failed_key)
        self.health_cache.record_outcome(self.job.pos_type, self.job.restaurant_id, success=True)
        logger.info(f"{kind} sync {self.job.entity_id} to {self.job.pos_type} succeeded on attempt {attempt}")
        return self._result(SyncTaskOutcome.SUCCESS, attempt, detail=detail)

    def _unexpected(self, error: Exception) -> POSTransientError:
        if isinstance(error, SoftTimeLimitExceeded):
            return POSTransientError("Sync attempt exceeded its time limit", error_code="TIME_LIMIT_EXCEEDED")
        logger.exception(f"Unexpected error in {self.policy.kind.value} sync {self.job.entity_id}: {error}")
        return POSTransientError(
            f"Unexpected error: {type(error).__name__}: {error}", error_code="UNEXPECTED_ERROR"
        )

    def _attempt(self) -> Dict[str, Any]:
        if not self.health_cache.is_healthy(
            self.job.pos_type,
            self.job.restaurant_id,
            cooldown_seconds=self.policy.health_cooldown_seconds,
            escalated_cooldown_seconds=self.policy.escalated_cooldown_seconds,
        ):
            raise POSConnectionUnavailableError(self.job.pos_type, self.job.restaurant_id)
        return self.job.execute() or {}

    def _handle_failure(self, error: POSSyncException, attempt: int) -> SyncTaskResult:
        kind = self.policy.kind.value

        if isinstance(error, CONNECTION_ERRORS):
            self.health_cache.record_outcome(
                self.job.pos_type,
                self.job.restaurant_id,
                success=False,
                error=error.message,
                ttl_seconds=self.policy.health_ttl_seconds,
            )

        failure = {
            "error": error.message,
            "error_code": error.error_code,
            "attempt": attempt,
            "failed_at": self._now_iso(),
        }

        if error.retryable and not self.policy.is_final(attempt):
            countdown = self.policy.countdown_for(attempt)
            self.cache.set(self.failed_key, failure, ttl=self.policy.failure_ttl_seconds)
            logger.warning(
                f"{kind} sync {self.job.entity_id} to {self.job.pos_type} failed on attempt "
                f"{attempt}/{self.policy.max_attempts}, retrying in {countdown}s: {error.message}"
            )
            result = self._result(SyncTaskOutcome.RETRY, attempt, error=error.message, countdown=countdown)
            raise SyncRetry(error, countdown, result)

        self.cache.set(
            self.failed_key,
            {**failure, "final": True},
            ttl=self.policy.exhausted_ttl_seconds,
        )
        try:
            self.job.on_exhausted(error)
        except SQLAlchemyError as e:
            logger.error(f"Could not record abandoned {kind} sync {self.job.entity_id}: {e}")

        reason = "exhausted its attempts" if error.retryable else "hit a permanent error"
        logger.critical(
            f"{kind} sync {self.job.entity_id} to {self.job.pos_type} {reason} "
            f"after attempt {attempt}: {error.message}"
        )
        self.audit_logger.log_security_event(
            event_type="pos_sync_failed",
            severity="critical",
            description=f"{kind} sync to {self.job.pos_type} {reason}",
            metadata={
                "entity_id": self.job.entity_id,
                "restaurant_id": self.job.restaurant_id,
                "attempt": attempt,
                "error": error.to_dict(),
            },
        )
        SyncMetrics.record_exhausted(kind, str(self.job.pos_type))
        return self._result(SyncTaskOutcome.FAILED, attempt, error=error.message)
