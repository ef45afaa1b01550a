"""
Audit Logging System

Structured JSON logging for login attempts and login source changes.
Compatible with Datadog, Splunk, CloudWatch, ELK, etc.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Audit logger that emits structured JSON through logging.

    Tracked events:
    - LOGIN_ATTEMPT (success/failure)
    - USER_PROVISIONED (created/updated)
    - SOURCE_CREATED/UPDATED/DELETED
    - DEFAULT_SOURCE_CHANGED
    """

    def __init__(self, enabled: bool = True):
        """
        Args:
            enabled: If False, audit logs are silenced
        """
        self.enabled = enabled

    def _emit(self, event: Dict[str, Any]) -> None:
        if not self.enabled:
            return

        if "timestamp" not in event:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()

        # Single-line JSON (parseable)
        logger.info(json.dumps(event, ensure_ascii=False))

    def login_attempt(
        self,
        login: str,
        source_id: int,
        success: bool,
        reason: Optional[str] = None,
    ) -> None:
        """
        Log a login attempt against a login source.

        Args:
            login: Upstream login identifier
            source_id: Login source used
            success: True if the backend verified the credentials
            reason: Failure reason (optional)
        """
        event: Dict[str, Union[str, int, bool]] = {
            "event_type": "LOGIN_ATTEMPT",
            "login": login,
            "source_id": source_id,
            "status": "SUCCESS" if success else "FAILURE",
        }

        if not success and reason:
            event["reason"] = reason

        self._emit(event)

    def user_provisioned(self, username: str, source_id: int, created: bool) -> None:
        """
        Log auto-registration of a local user.

        Args:
            username: Local username
            source_id: Login source that verified the user
            created: True for a new user, False for an in-place update
        """
        self._emit(
            {
                "event_type": "USER_PROVISIONED",
                "username": username,
                "source_id": source_id,
                "action": "created" if created else "updated",
            }
        )

    def source_changed(self, event_type: str, source_id: int, name: str, origin: str) -> None:
        """Log SOURCE_CREATED / SOURCE_UPDATED / SOURCE_DELETED."""
        self._emit(
            {
                "event_type": event_type,
                "source_id": source_id,
                "name": name,
                "origin": origin,
            }
        )

    def default_source_changed(self, source_id: int, name: str) -> None:
        self._emit({"event_type": "DEFAULT_SOURCE_CHANGED", "source_id": source_id, "name": name})


# ========================================
# Global Singleton Instance
# ========================================

_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """
    Returns audit logger singleton.

    Returns:
        Global AuditLogger instance
    """
    global _audit_logger

    if _audit_logger is None:
        from .config import config

        _audit_logger = AuditLogger(enabled=config.AUDIT_LOG_ENABLED)

    return _audit_logger


# ========================================
# Convenience Functions
# ========================================


def log_login_attempt(
    login: str, source_id: int, success: bool, reason: Optional[str] = None
) -> None:
    """Convenience function for login attempt."""
    get_audit_logger().login_attempt(login, source_id, success, reason)


def log_user_provisioned(username: str, source_id: int, created: bool) -> None:
    """Convenience function for auto-registration."""
    get_audit_logger().user_provisioned(username, source_id, created)


def log_source_changed(event_type: str, source_id: int, name: str, origin: str) -> None:
    """Convenience function for source lifecycle events."""
    get_audit_logger().source_changed(event_type, source_id, name, origin)


def log_default_source_changed(source_id: int, name: str) -> None:
    get_audit_logger().default_source_changed(source_id, name)
