"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Plug in whatever database the host application already uses
2. Use in-memory storage for testing
3. Add caching layers transparently
4. Keep the balance engine decoupled from storage implementation

The interface is intentionally small - just the scoped reads the engine
needs and the per-record mutations settle-up needs.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from splitbook.models.audit import AuditEvent
from splitbook.models.records import ExpenseShare, LoanShare


class RecordStoreInterface(ABC):
    """
    Abstract interface for expense / loan record storage.

    Any storage implementation must implement these methods.
    Scoping reads to the viewing user is the store's responsibility.
    """

    @abstractmethod
    async def list_unsettled_expense_shares(
        self,
        viewing_user_id: str,
    ) -> list[ExpenseShare]:
        """
        List unpaid expense shares involving a user.

        Must include rows where the user is the participant AND rows
        where the user created the expense and someone else is the
        participant.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def list_unsettled_loan_shares(
        self,
        viewing_user_id: str,
    ) -> list[LoanShare]:
        """
        List unsettled loan shares involving a user.

        Must include rows where the user created the loan OR is the
        share's counterparty.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def mark_expense_share_paid(self, share_id: str) -> None:
        """
        Mark an expense share as paid.

        Idempotent: marking an already-paid share again is a no-op.

        Raises:
            NotFoundError: If the share doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def mark_loan_share_settled(self, share_id: str) -> None:
        """
        Mark a loan share as settled.

        Idempotent: settling an already-settled share again is a no-op.

        Raises:
            NotFoundError: If the share doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense and its shares.

        Returns:
            True if it existed, False if it was already gone
        """
        pass

    @abstractmethod
    async def delete_loan(self, loan_id: str) -> bool:
        """
        Delete a loan and its shares.

        Returns:
            True if it existed, False if it was already gone
        """
        pass

    @property
    def supports_transactions(self) -> bool:
        """Whether transaction() gives all-or-nothing semantics."""
        return False

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Group several mutations into one atomic unit.

        Stores without transactions raise; callers check
        supports_transactions first.
        """
        raise StorageError(f"{type(self).__name__} does not support transactions")
        yield  # pragma: no cover


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one balance request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not reach the storage backend. Worth retrying."""
    pass
