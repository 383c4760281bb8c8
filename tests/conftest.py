"""
Shared fixtures for Splitbook tests.

Records are built directly (no store) so engine tests stay pure.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest

from splitbook.config import EngineSettings
from splitbook.models.records import (
    Expense,
    ExpenseShare,
    Loan,
    LoanDirection,
    LoanShare,
    User,
)

BASE_TIME = datetime(2024, 12, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def me() -> User:
    return User(id="u-me", name="Me", email="me@example.com")


@pytest.fixture
def alice() -> User:
    return User(id="u-alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> User:
    return User(id="u-bob", name="Bob", email="bob@example.com")


@pytest.fixture
def fast_settings() -> EngineSettings:
    """Engine settings with no retry backoff."""
    return EngineSettings(
        store_retry_attempts=3,
        store_retry_min_wait=0,
        store_retry_max_wait=0,
    )


@pytest.fixture
def make_expense_share():
    """Build an ExpenseShare (with its Expense) in one call."""
    ids = count(1)

    def _make(
        creator: User,
        participant: User,
        share_amount,
        amount=None,
        is_paid: bool = False,
        minutes: int = 0,
        expense_id: str = None,
        title: str = "Dinner",
    ) -> ExpenseShare:
        n = next(ids)
        expense = Expense(
            id=expense_id or f"exp-{n}",
            title=title,
            amount=Decimal(str(amount if amount is not None else share_amount)),
            category="food",
            creator=creator,
            is_split=True,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
        return ExpenseShare(
            id=f"es-{n}",
            expense=expense,
            participant=participant,
            share_amount=Decimal(str(share_amount)),
            is_paid=is_paid,
        )

    return _make


@pytest.fixture
def make_loan_share():
    """Build a LoanShare (with its Loan) in one call."""
    ids = count(1)

    def _make(
        creator: User,
        counterparty: User,
        amount,
        direction: LoanDirection = LoanDirection.BORROW,
        is_settled: bool = False,
        minutes: int = 0,
        loan_id: str = None,
    ) -> LoanShare:
        n = next(ids)
        loan = Loan(
            id=loan_id or f"loan-{n}",
            title="Cab fare",
            amount=Decimal(str(amount)),
            category="travel",
            creator=creator,
            direction=direction,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
        return LoanShare(
            id=f"ls-{n}",
            loan=loan,
            counterparty=counterparty,
            amount=Decimal(str(amount)),
            is_settled=is_settled,
        )

    return _make
