"""
Audit Logger

DESIGN DECISION: Every remote call and state transition is logged.
This provides:
1. Traceability of what the sync engine did
2. Debugging capability when the backend is misconfigured
3. Visibility into results that were discarded as stale

The audit logger:
- Writes structured JSON lines through structlog
- Never raises (logging must not break the main flow)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log at the level matching their
    severity. The most recent events are also kept in memory so the UI
    and tests can inspect them.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("zenfolio.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally."""
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[0]

        log_dict = event.to_log_dict()
        severity = event.severity.value

        if severity == "error":
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_connection_started(self, endpoint: str, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.connection_started(endpoint, correlation_id))

    def log_connection_succeeded(
        self,
        endpoint: str,
        generation: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.connection_succeeded(endpoint, generation, correlation_id))

    def log_connection_failed(
        self,
        endpoint: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(
            AuditEventBuilder.connection_failed(
                endpoint=endpoint,
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        )

    def log_credentials_reset(self, generation: int) -> None:
        self.log(AuditEventBuilder.credentials_reset(generation))

    def log_login_succeeded(
        self,
        user_id: str,
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.login_succeeded(user_id, username, correlation_id))

    def log_login_failed(
        self,
        username: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.login_failed(username, reason, correlation_id))

    def log_logout(self, user_id: Optional[str]) -> None:
        self.log(AuditEventBuilder.logout(user_id))

    def log_fetch_completed(
        self,
        user_id: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.fetch_completed(user_id, entry_count, correlation_id))

    def log_fetch_failed(
        self,
        user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.fetch_failed(user_id, error_message, correlation_id))

    def log_entry_deleted(self, entry_id: str, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.entry_deleted(entry_id, correlation_id))

    def log_delete_failed(
        self,
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.delete_failed(entry_id, error_message, correlation_id))

    def log_entry_saved(
        self,
        entry_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.entry_saved(entry_id, name, correlation_id))

    def log_save_failed(
        self,
        entry_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(entry_id, error_message, correlation_id))

    def log_subscription_started(self, table: str, user_id: str) -> None:
        self.log(AuditEventBuilder.subscription_started(table, user_id))

    def log_subscription_stopped(self, table: str) -> None:
        self.log(AuditEventBuilder.subscription_stopped(table))

    def log_change_received(self, table: str) -> None:
        self.log(AuditEventBuilder.change_received(table))

    def log_stale_result(self, operation: str, started_epoch: int, current_epoch: int) -> None:
        self.log(AuditEventBuilder.stale_result_discarded(operation, started_epoch, current_epoch))

    def log_storage_read_failed(self, scope: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_read_failed(scope, error_message))

    def log_storage_write_failed(self, scope: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_write_failed(scope, error_message))

    def log_state_changed(self, previous: str, current: str, epoch: int) -> None:
        self.log(AuditEventBuilder.state_changed(previous, current, epoch))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (connect, login, delete).
    Pass it through all subsequent operations.
    """
    return uuid4()
