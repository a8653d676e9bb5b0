"""
Audit Models for Zenfolio

Every remote call and every state change worth diagnosing is recorded as
an AuditEvent. This provides:
1. A trail of what the sync engine did and in which order
2. Debugging information when the backend misbehaves
3. A place to see discarded (stale) results

DESIGN DECISION: Events never carry secrets. No keys, no passwords.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Connection
    CONNECTION_STARTED = "connection_started"
    CONNECTION_SUCCEEDED = "connection_succeeded"
    CONNECTION_FAILED = "connection_failed"
    CREDENTIALS_RESET = "credentials_reset"

    # Authentication
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"

    # Entries
    FETCH_COMPLETED = "fetch_completed"
    FETCH_FAILED = "fetch_failed"
    ENTRY_DELETED = "entry_deleted"
    DELETE_FAILED = "delete_failed"
    ENTRY_SAVED = "entry_saved"
    SAVE_FAILED = "save_failed"

    # Live sync
    SUBSCRIPTION_STARTED = "subscription_started"
    SUBSCRIPTION_STOPPED = "subscription_stopped"
    CHANGE_RECEIVED = "change_received"
    STALE_RESULT_DISCARDED = "stale_result_discarded"

    # Local persistence
    STORAGE_READ_FAILED = "storage_read_failed"
    STORAGE_WRITE_FAILED = "storage_write_failed"

    # State machine
    STATE_CHANGED = "state_changed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the diagnostic trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'session', 'connection')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Groups the events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_failed(username, correlation_id)
        event = AuditEventBuilder.fetch_completed(user_id, count)
    """

    @staticmethod
    def connection_started(
        endpoint: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_STARTED,
            entity_type="connection",
            correlation_id=correlation_id,
            description=f"Connecting to {endpoint}",
            details={"endpoint": endpoint},
        )

    @staticmethod
    def connection_succeeded(
        endpoint: str,
        generation: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_SUCCEEDED,
            entity_type="connection",
            entity_id=str(generation),
            correlation_id=correlation_id,
            description=f"Connected to {endpoint}",
            details={"endpoint": endpoint, "generation": generation},
            is_user_action=True,
        )

    @staticmethod
    def connection_failed(
        endpoint: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="connection",
            correlation_id=correlation_id,
            description=f"Connection to {endpoint} failed: {error_type}",
            details={"endpoint": endpoint, "error_type": error_type},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def credentials_reset(generation: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIALS_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="connection",
            entity_id=str(generation),
            description="Stored credentials discarded",
            is_user_action=True,
        )

    @staticmethod
    def login_succeeded(
        user_id: str,
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="session",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"User logged in: {username}",
            is_user_action=True,
        )

    @staticmethod
    def login_failed(
        username: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Login rejected for {username}",
            # reason stays internal, the caller only sees a uniform message
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def logout(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT,
            entity_type="session",
            entity_id=user_id,
            description="User logged out",
            is_user_action=True,
        )

    @staticmethod
    def fetch_completed(
        user_id: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_COMPLETED,
            severity=AuditSeverity.DEBUG,
            entity_type="entries",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Fetched {entry_count} entries",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def fetch_failed(
        user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="entries",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Fetching entries failed",
            error_message=error_message,
        )

    @staticmethod
    def entry_deleted(
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry deleted: {entry_id}",
            is_user_action=True,
        )

    @staticmethod
    def delete_failed(
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Deleting entry {entry_id} failed",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def entry_saved(
        entry_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry saved: {name}",
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Saving entry {entry_id} failed",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def subscription_started(table: str, user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="subscription",
            entity_id=user_id,
            description=f"Watching {table} for changes",
            details={"table": table},
        )

    @staticmethod
    def subscription_stopped(table: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_STOPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="subscription",
            description=f"Stopped watching {table}",
            details={"table": table},
        )

    @staticmethod
    def change_received(table: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHANGE_RECEIVED,
            severity=AuditSeverity.DEBUG,
            entity_type="subscription",
            description=f"Change received on {table}",
            details={"table": table},
        )

    @staticmethod
    def stale_result_discarded(
        operation: str,
        started_epoch: int,
        current_epoch: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESULT_DISCARDED,
            severity=AuditSeverity.DEBUG,
            description=f"Discarded superseded {operation} result",
            details={
                "operation": operation,
                "started_epoch": started_epoch,
                "current_epoch": current_epoch,
            },
        )

    @staticmethod
    def storage_read_failed(scope: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_READ_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="local_storage",
            entity_id=scope,
            description=f"Could not read {scope} storage, treating as absent",
            error_message=error_message,
        )

    @staticmethod
    def storage_write_failed(scope: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="local_storage",
            entity_id=scope,
            description=f"Could not write {scope} storage",
            error_message=error_message,
        )

    @staticmethod
    def state_changed(previous: str, current: str, epoch: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_CHANGED,
            severity=AuditSeverity.DEBUG,
            description=f"{previous} -> {current}",
            details={"previous": previous, "current": current, "epoch": epoch},
        )
