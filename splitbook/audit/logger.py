"""
Audit Logger

DESIGN DECISION: Every balance computation and every settle/delete
request is logged. This provides:
1. Traceability of how a number on screen was produced
2. Visibility into dropped records (bad source data)
3. A history of settle-up actions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitbook.models.audit import AuditEvent, AuditEventBuilder
from splitbook.models.balance import BalanceSummary, EdgeRef
from splitbook.services.storage import AuditStorageInterface


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

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_balances_computed(
        self,
        summary: BalanceSummary,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a finished balance computation, plus one event per dropped record."""
        for issue in summary.issues:
            await self.log(AuditEventBuilder.edge_issue(
                viewing_user_id=summary.viewing_user_id,
                issue=issue,
                correlation_id=correlation_id,
            ))
        await self.log(AuditEventBuilder.balances_computed(
            summary=summary,
            correlation_id=correlation_id,
        ))

    async def log_upstream_unavailable(
        self,
        viewing_user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record store read failure."""
        event = AuditEventBuilder.upstream_unavailable(
            viewing_user_id=viewing_user_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_share_settled(
        self,
        ref: EdgeRef,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a share marked paid / settled."""
        await self.log(AuditEventBuilder.share_settled(ref, correlation_id))

    async def log_source_deleted(
        self,
        ref: EdgeRef,
        existed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense or loan deletion."""
        await self.log(AuditEventBuilder.source_deleted(ref, existed, correlation_id))

    async def log_bulk_operation_failed(
        self,
        operation: str,
        failed: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the records a bulk settle/delete could not apply."""
        event = AuditEventBuilder.bulk_operation_failed(
            operation=operation,
            failed=failed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., opening the
    balances screen). Pass it through all subsequent operations.
    """
    return uuid4()
