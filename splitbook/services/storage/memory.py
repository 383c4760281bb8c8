"""
In-Memory Storage Implementation

Reference implementation of the storage interfaces. Used by the test
suite, and by hosts that already hold a snapshot of their records in
memory and just want balances out of it.

Record creation mirrors how the expense tracker writes records:
- A split expense gets one share per participant, all equal; the
  creator is never a share row and keeps the rounding remainder.
- A loan gets one share per counterparty, each carrying the full amount.

TRADEOFFS:
- Nothing survives the process
- transaction() snapshots the whole store; fine for personal-scale data
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional
from uuid import UUID, uuid4

from splitbook.engine.money import MoneyLike, split_equally, to_money
from splitbook.models.audit import AuditEvent
from splitbook.models.records import (
    Expense,
    ExpenseShare,
    Loan,
    LoanDirection,
    LoanShare,
    User,
)
from splitbook.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


def _new_id() -> str:
    return uuid4().hex


def _unique_others(creator: User, people: Iterable[User]) -> list[User]:
    """Drop the creator and duplicates, keeping first-seen order."""
    seen = {creator.id}
    result = []
    for person in people:
        if person.id in seen:
            continue
        seen.add(person.id)
        result.append(person)
    return result


class InMemoryRecordStore(RecordStoreInterface):
    """Record store backed by plain dicts."""

    def __init__(self, places: int = 2):
        self._places = places
        self._users: dict[str, User] = {}
        self._expenses: dict[str, Expense] = {}
        self._expense_shares: dict[str, ExpenseShare] = {}
        self._loans: dict[str, Loan] = {}
        self._loan_shares: dict[str, LoanShare] = {}

    # -------------------------------------------------------------------------
    # Writes used to set up data
    # -------------------------------------------------------------------------

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def create_expense(
        self,
        creator: User,
        amount: MoneyLike,
        category: str = "other",
        participants: Iterable[User] = (),
        title: Optional[str] = None,
        description: Optional[str] = None,
        is_split: Optional[bool] = None,
        created_at: Optional[datetime] = None,
    ) -> Expense:
        """
        Record an expense paid by creator.

        If the expense is split (default: whenever participants are given),
        every participant gets an equal, unpaid share.
        """
        others = _unique_others(creator, participants)
        if is_split is None:
            is_split = bool(others)

        total = to_money(amount, self._places)
        if total <= 0:
            raise StorageError(f"Expense amount must be positive, got {total}")

        expense = Expense(
            id=_new_id(),
            title=title,
            description=description,
            amount=total,
            category=category,
            creator=creator,
            is_split=is_split,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.add_user(creator)
        self._expenses[expense.id] = expense

        if is_split and others:
            split = split_equally(total, len(others), self._places)
            for participant in others:
                self.add_user(participant)
                share = ExpenseShare(
                    id=_new_id(),
                    expense=expense,
                    participant=participant,
                    share_amount=split.participant_share,
                )
                self._expense_shares[share.id] = share

        return expense

    def create_loan(
        self,
        creator: User,
        amount: MoneyLike,
        direction: LoanDirection,
        counterparties: Iterable[User],
        category: str = "other",
        title: Optional[str] = None,
        description: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Loan:
        """Record a borrow/lend; each counterparty's share carries the full amount."""
        total = to_money(amount, self._places)
        if total <= 0:
            raise StorageError(f"Loan amount must be positive, got {total}")

        loan = Loan(
            id=_new_id(),
            title=title,
            description=description,
            amount=total,
            category=category,
            creator=creator,
            direction=direction,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.add_user(creator)
        self._loans[loan.id] = loan

        for counterparty in _unique_others(creator, counterparties):
            self.add_user(counterparty)
            share = LoanShare(
                id=_new_id(),
                loan=loan,
                counterparty=counterparty,
                amount=total,
            )
            self._loan_shares[share.id] = share

        return loan

    def expense_shares_for(self, expense_id: str) -> list[ExpenseShare]:
        return [s for s in self._expense_shares.values() if s.expense.id == expense_id]

    def loan_shares_for(self, loan_id: str) -> list[LoanShare]:
        return [s for s in self._loan_shares.values() if s.loan.id == loan_id]

    # -------------------------------------------------------------------------
    # RecordStoreInterface
    # -------------------------------------------------------------------------

    async def list_unsettled_expense_shares(
        self,
        viewing_user_id: str,
    ) -> list[ExpenseShare]:
        return [
            share
            for share in self._expense_shares.values()
            if not share.is_paid
            and (
                share.participant.id == viewing_user_id
                or (
                    share.expense.creator.id == viewing_user_id
                    and share.participant.id != viewing_user_id
                )
            )
        ]

    async def list_unsettled_loan_shares(
        self,
        viewing_user_id: str,
    ) -> list[LoanShare]:
        return [
            share
            for share in self._loan_shares.values()
            if not share.is_settled
            and (
                share.counterparty.id == viewing_user_id
                or share.loan.creator.id == viewing_user_id
            )
        ]

    async def mark_expense_share_paid(self, share_id: str) -> None:
        share = self._expense_shares.get(share_id)
        if share is None:
            raise NotFoundError(f"Expense share not found: {share_id}")
        if not share.is_paid:
            self._expense_shares[share_id] = share.model_copy(update={"is_paid": True})

    async def mark_loan_share_settled(self, share_id: str) -> None:
        share = self._loan_shares.get(share_id)
        if share is None:
            raise NotFoundError(f"Loan share not found: {share_id}")
        if not share.is_settled:
            self._loan_shares[share_id] = share.model_copy(update={"is_settled": True})

    async def delete_expense(self, expense_id: str) -> bool:
        if self._expenses.pop(expense_id, None) is None:
            return False
        for share in self.expense_shares_for(expense_id):
            del self._expense_shares[share.id]
        return True

    async def delete_loan(self, loan_id: str) -> bool:
        if self._loans.pop(loan_id, None) is None:
            return False
        for share in self.loan_shares_for(loan_id):
            del self._loan_shares[share.id]
        return True

    @property
    def supports_transactions(self) -> bool:
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Snapshot the record tables; restore them if the block raises."""
        snapshot = (
            dict(self._expenses),
            dict(self._expense_shares),
            dict(self._loans),
            dict(self._loan_shares),
        )
        try:
            yield
        except BaseException:
            (
                self._expenses,
                self._expense_shares,
                self._loans,
                self._loan_shares,
            ) = snapshot
            raise


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return sorted(
            (e for e in self._events if e.correlation_id == correlation_id),
            key=lambda e: e.timestamp,
        )

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
