"""
Audit logging for security-sensitive operations.

Entries go to the dedicated ``audit`` logger so deployments can route them
to their own sink; security events are mirrored to the module logger for
monitoring.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .security_config import sanitize_log_data

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


class AuditLogger:
    """
    Audit logger for payment, sync and webhook events.

    The interface is the collaborator boundary: tests pass a recording
    subclass, production wires whatever sink the ``audit`` logger has.
    """

    def __init__(self, audit_log: Optional[logging.Logger] = None):
        self.audit_log = audit_log or logging.getLogger("audit")

    def _emit(self, level: int, prefix: str, log_entry: Dict[str, Any]) -> None:
        self.audit_log.log(level, f"{prefix}: {json.dumps(log_entry, default=str)}")

    def log_operation(
        self,
        operation_type: str,
        status: str,
        description: str,
        metadata: Optional[Dict] = None,
    ) -> None:
        """Record a completed or failed business operation."""
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "operation_type": operation_type,
            "status": status,
            "description": description,
            "audit_metadata": sanitize_log_data(metadata or {}),
        }
        level = logging.INFO if status != "failed" else logging.WARNING
        self._emit(level, "AUDIT", log_entry)

    def log_security_event(
        self,
        event_type: str,
        severity: str,
        description: str,
        client_ip: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> None:
        """Log a security event (bad signature, disconnected POS, exhausted sync)."""
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_type": event_type,
            "severity": severity,
            "description": description,
            "client_ip": client_ip,
            "audit_metadata": sanitize_log_data(metadata or {}),
        }

        level = SEVERITY_LEVELS.get(severity, logging.WARNING)
        self._emit(level, "SECURITY_EVENT", log_entry)

        # Also log to application logger for monitoring
        logger.log(level, f"Security event: {event_type} - {description}")


class RecordingAuditLogger(AuditLogger):
    """Audit logger that also keeps entries in memory; used by tests and tooling."""

    def __init__(self):
        super().__init__()
        self.operations: List[Dict[str, Any]] = []
        self.security_events: List[Dict[str, Any]] = []

    def log_operation(self, operation_type, status, description, metadata=None):
        self.operations.append({
            "operation_type": operation_type,
            "status": status,
            "description": description,
            "metadata": metadata or {},
        })
        super().log_operation(operation_type, status, description, metadata)

    def log_security_event(self, event_type, severity, description, client_ip=None, metadata=None):
        self.security_events.append({
            "event_type": event_type,
            "severity": severity,
            "description": description,
            "client_ip": client_ip,
            "metadata": metadata or {},
        })
        super().log_security_event(event_type, severity, description, client_ip, metadata)


audit_logger = AuditLogger()
