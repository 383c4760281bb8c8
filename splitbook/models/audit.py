"""
Audit Models for Splitbook

Every balance computation, every dropped record and every mutation
requested through the engine is logged for audit purposes.
This provides:
1. Traceability of why a balance looks the way it does
2. Visibility into bad source data (dropped edges are never silent)
3. A record of bulk settle/delete requests and their outcomes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from splitbook.models.balance import BalanceSummary, EdgeIssue, EdgeRef, IssueKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Computation
    BALANCES_COMPUTED = "balances_computed"
    EDGE_REJECTED = "edge_rejected"
    COUNTERPARTY_MISSING = "counterparty_missing"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"

    # Mutations
    SHARE_SETTLED = "share_settled"
    SOURCE_DELETED = "source_deleted"
    BULK_OPERATION_FAILED = "bulk_operation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'expense', 'loan')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one balance request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
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
        event = AuditEventBuilder.balances_computed(summary, correlation_id)
        event = AuditEventBuilder.share_settled(ref, correlation_id)
    """

    @staticmethod
    def balances_computed(
        summary: BalanceSummary,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.WARNING if summary.has_issues else AuditSeverity.INFO,
            entity_type="user",
            entity_id=summary.viewing_user_id,
            correlation_id=correlation_id,
            description=(
                f"Balances computed: owes {summary.currency} {summary.total_owed_by_me}, "
                f"owed {summary.currency} {summary.total_owed_to_me}"
            ),
            details={
                "total_owed_by_me": str(summary.total_owed_by_me),
                "total_owed_to_me": str(summary.total_owed_to_me),
                "owe_group_count": len(summary.owe_groups),
                "owed_group_count": len(summary.owed_groups),
                "issue_count": len(summary.issues),
            },
        )

    @staticmethod
    def edge_issue(
        viewing_user_id: str,
        issue: EdgeIssue,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.EDGE_REJECTED
            if issue.kind == IssueKind.INVALID_EDGE
            else AuditEventType.COUNTERPARTY_MISSING
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type=issue.ref.source_kind.value,
            entity_id=issue.ref.source_id,
            correlation_id=correlation_id,
            description=issue.message[:500],
            details={
                "viewing_user_id": viewing_user_id,
                "share_id": issue.ref.share_id,
                "issue_kind": issue.kind.value,
            },
        )

    @staticmethod
    def upstream_unavailable(
        viewing_user_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPSTREAM_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="user",
            entity_id=viewing_user_id,
            correlation_id=correlation_id,
            description="Record store unavailable; balances not computed",
            error_message=error_message,
        )

    @staticmethod
    def share_settled(
        ref: EdgeRef,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_SETTLED,
            entity_type=ref.source_kind.value,
            entity_id=ref.source_id,
            correlation_id=correlation_id,
            description=f"Share marked settled: {ref}",
            details={"share_id": ref.share_id},
            is_user_action=True,
        )

    @staticmethod
    def source_deleted(
        ref: EdgeRef,
        existed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_DELETED,
            entity_type=ref.source_kind.value,
            entity_id=ref.source_id,
            correlation_id=correlation_id,
            description=(
                f"{ref.source_kind.value.capitalize()} deleted"
                if existed
                else f"{ref.source_kind.value.capitalize()} already absent"
            ),
            details={"existed": existed},
            is_user_action=True,
        )

    @staticmethod
    def bulk_operation_failed(
        operation: str,
        failed: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BULK_OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Bulk {operation} failed for {len(failed)} records",
            details={
                "operation": operation,
                "failed": failed,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
