"""
Balance Models for Splitbook

Everything here is DERIVED. Nothing in this module is stored:
edges, groups and summaries are rebuilt from source records on
every computation.

DESIGN DECISION: Every edge carries an explicit SourceKind tag
plus the ids of its source record and share. Callers never have to
guess whether an item came from an expense or a loan, and they
always have what they need to mark it settled or delete it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from splitbook.models.records import LoanDirection, User


class SourceKind(str, Enum):
    """Which kind of source record an edge was derived from."""
    EXPENSE = "expense"
    LOAN = "loan"


class BalanceDirection(str, Enum):
    """Side of the ledger, relative to the viewing user."""
    I_OWE = "i_owe"
    OWED_TO_ME = "owed_to_me"


class IssueKind(str, Enum):
    """Per-edge faults that are recovered from by dropping the edge."""
    INVALID_EDGE = "invalid_edge"    # self-debt, negative or non-finite amount
    MISSING_PARTY = "missing_party"  # counterparty without name/email


class EdgeRef(BaseModel):
    """
    Provenance of an edge.

    source_id identifies the Expense or Loan (used for deletes),
    share_id identifies the ExpenseShare or LoanShare (used for
    mark-paid / mark-settled).
    """
    model_config = ConfigDict(frozen=True)

    source_kind: SourceKind
    source_id: str
    share_id: str

    def __str__(self) -> str:
        return f"{self.source_kind.value}:{self.source_id}/{self.share_id}"


class DebtEdge(BaseModel):
    """
    A directional debt: debtor owes creditor `amount`.

    Amounts are already quantized to the currency's minor unit.
    """
    model_config = ConfigDict(frozen=True)

    debtor: User
    creditor: User
    amount: Decimal = Field(..., ge=0)
    source_kind: SourceKind
    source_id: str
    share_id: str
    settled: bool = False
    created_at: datetime

    # Display metadata
    title: Optional[str] = None
    category: Optional[str] = None
    loan_direction: Optional[LoanDirection] = None

    @property
    def ref(self) -> EdgeRef:
        return EdgeRef(
            source_kind=self.source_kind,
            source_id=self.source_id,
            share_id=self.share_id,
        )

    @property
    def sort_key(self) -> tuple:
        """Stable display order: creation time, then source id, then share id."""
        return (self.created_at, self.source_id, self.share_id)

    def counterparty_of(self, user_id: str) -> Optional[User]:
        """The other party relative to user_id, or None if user_id is not on this edge."""
        if self.debtor.id == user_id:
            return self.creditor
        if self.creditor.id == user_id:
            return self.debtor
        return None


class EdgeIssue(BaseModel):
    """A record that was left out of the results, and why."""
    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    ref: EdgeRef
    message: str


class BalanceTotals(BaseModel):
    """Gross totals for the viewing user. Never netted against each other."""
    model_config = ConfigDict(frozen=True)

    total_owed_by_me: Decimal = Field(default=Decimal("0"), ge=0)
    total_owed_to_me: Decimal = Field(default=Decimal("0"), ge=0)


class CounterpartyGroup(BaseModel):
    """All unsettled edges between the viewing user and one counterparty, in one direction."""
    model_config = ConfigDict(frozen=True)

    counterparty: User
    direction: BalanceDirection
    total: Decimal = Field(..., ge=0)
    edges: list[DebtEdge] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.edges)


class NetPosition(BaseModel):
    """Net view of one counterparty, derived from the two directional groups."""
    model_config = ConfigDict(frozen=True)

    counterparty: User
    owed_to_me: Decimal = Decimal("0")
    i_owe: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        """Positive: the counterparty owes me on balance. Negative: I owe them."""
        return self.owed_to_me - self.i_owe


class BalanceSummary(BaseModel):
    """
    Result of one balance computation for one viewing user.

    CRITICAL: No wall-clock timestamp lives here. Two computations over
    the same records must compare equal.
    """
    model_config = ConfigDict(frozen=True)

    viewing_user_id: str
    currency: str = "INR"

    total_owed_by_me: Decimal = Field(default=Decimal("0"), ge=0)
    total_owed_to_me: Decimal = Field(default=Decimal("0"), ge=0)

    owe_groups: list[CounterpartyGroup] = Field(
        default_factory=list,
        description="People I owe, one group per counterparty"
    )
    owed_groups: list[CounterpartyGroup] = Field(
        default_factory=list,
        description="People who owe me, one group per counterparty"
    )

    issues: list[EdgeIssue] = Field(
        default_factory=list,
        description="Records dropped from totals or groups"
    )

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @property
    def edges(self) -> list[DebtEdge]:
        """Every grouped edge, I-owe side first."""
        return [
            edge
            for group in (*self.owe_groups, *self.owed_groups)
            for edge in group.edges
        ]
