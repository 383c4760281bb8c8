"""
Data Models Package

This package contains all Pydantic models used in Splitbook.
Source records come in, derived balance models go out.
"""

from splitbook.models.records import (
    Expense,
    ExpenseShare,
    Loan,
    LoanDirection,
    LoanShare,
    User,
)
from splitbook.models.balance import (
    BalanceDirection,
    BalanceSummary,
    BalanceTotals,
    CounterpartyGroup,
    DebtEdge,
    EdgeIssue,
    EdgeRef,
    IssueKind,
    NetPosition,
    SourceKind,
)
from splitbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Source records
    "Expense",
    "ExpenseShare",
    "Loan",
    "LoanDirection",
    "LoanShare",
    "User",
    # Balance models
    "BalanceDirection",
    "BalanceSummary",
    "BalanceTotals",
    "CounterpartyGroup",
    "DebtEdge",
    "EdgeIssue",
    "EdgeRef",
    "IssueKind",
    "NetPosition",
    "SourceKind",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
