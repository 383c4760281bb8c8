"""
Engine Exceptions

Two kinds of failure exist:
- Per-edge faults (ValidationError, MissingPartyError): the record is
  dropped, reported as an EdgeIssue and the computation carries on.
- Aggregate faults (UpstreamUnavailable): source data could not be read
  at all. These propagate. A partial balance is worse than none.
"""

from typing import Optional

from splitbook.models.balance import EdgeIssue, EdgeRef, IssueKind


class EngineError(Exception):
    """Base exception for balance engine errors."""
    pass


class EdgeError(EngineError):
    """A single record could not be turned into a usable edge."""

    kind: IssueKind = IssueKind.INVALID_EDGE

    def __init__(self, ref: EdgeRef, message: str):
        self.ref = ref
        super().__init__(message)

    def to_issue(self) -> EdgeIssue:
        return EdgeIssue(kind=self.kind, ref=self.ref, message=str(self))


class ValidationError(EdgeError):
    """Malformed edge: debtor equals creditor, or amount is negative / not finite."""
    kind = IssueKind.INVALID_EDGE


class MissingPartyError(EdgeError):
    """The counterparty on an edge has no name or no email."""
    kind = IssueKind.MISSING_PARTY


class UpstreamUnavailable(EngineError):
    """The record store could not be read."""

    def __init__(self, message: str, viewing_user_id: Optional[str] = None):
        self.viewing_user_id = viewing_user_id
        super().__init__(message)
