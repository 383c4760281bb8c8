"""
Source Record Models for Splitbook

These are the records the Record Store hands to the balance engine.
They are READ-ONLY inputs: the engine never mutates them, and all
state changes (paid, settled, deleted) happen in the store.

DESIGN DECISION: Parent records are embedded in their shares.
An ExpenseShare carries its Expense (with creator) and a LoanShare
carries its Loan, so a share is self-describing and the engine never
has to join anything.

DESIGN DECISION: Amounts are not range-checked here.
The store is trusted to hand over validated data, but if it does not,
the extractor must be able to see the bad value, report it and drop
the edge. Rejecting at construction would crash the whole read instead.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _assume_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC so all records compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class LoanDirection(str, Enum):
    """
    Direction tag on a borrow/lend record, from the creator's side.

    BORROW: the creator borrowed from each counterparty.
    LEND: the creator lent to each counterparty.
    """
    BORROW = "BORROW"
    LEND = "LEND"


# =============================================================================
# PARTIES
# =============================================================================

class User(BaseModel):
    """
    A person taking part in expenses or loans.

    Name and email are optional because participants can be added by
    email alone, and the grouper must be able to detect a party whose
    identity is incomplete.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque user identifier"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Display name"
    )
    email: Optional[str] = Field(
        default=None,
        max_length=320,
        description="Contact email"
    )

    @property
    def has_identity(self) -> bool:
        """True when both a display name and an email are present."""
        return bool(self.name) and bool(self.email)

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    An expense paid by its creator, optionally split with others.

    The creator's own share is implicit: whatever the participant
    shares do not cover.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: Decimal = Field(
        ...,
        description="Total amount paid by the creator"
    )
    category: str = Field(
        default="other",
        max_length=100,
        description="Free-form category name"
    )
    creator: User
    is_split: bool = Field(
        default=False,
        description="Whether the expense is shared with participants"
    )
    created_at: datetime

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _assume_utc(v)


class ExpenseShare(BaseModel):
    """
    One participant's portion of a split expense.

    The participant owes share_amount to the expense creator until
    the share is marked paid.

    NOTE: share_amount accepts NaN/Infinity, unlike Expense.amount, so the
    extractor can report such a share as an issue instead of the read failing.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    expense: Expense
    participant: User
    share_amount: Decimal = Field(
        ...,
        allow_inf_nan=True,
        description="Amount this participant owes the creator"
    )
    is_paid: bool = False


# =============================================================================
# LOANS
# =============================================================================

class Loan(BaseModel):
    """An informal borrow/lend record created by one user."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: Decimal
    category: str = Field(default="other", max_length=100)
    creator: User
    direction: LoanDirection
    created_at: datetime

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _assume_utc(v)


class LoanShare(BaseModel):
    """
    One counterparty's side of a loan.

    NOTE: amount accepts NaN/Infinity, unlike Loan.amount, so the extractor
    can report such a share as an issue instead of the read failing.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    loan: Loan
    counterparty: User
    amount: Decimal = Field(
        ...,
        allow_inf_nan=True,
        description="Amount outstanding on this share"
    )
    is_settled: bool = False
