"""
Debt Extractor

Turns raw share records into uniform directional debt edges.

DIRECTION RULES:
- ExpenseShare: participant owes the expense creator.
- LoanShare, BORROW: the loan creator owes the counterparty
  (the creator borrowed from them).
- LoanShare, LEND: the counterparty owes the loan creator.

This is the ONLY place the direction of a debt is decided. Downstream
code reads debtor/creditor and never looks at the source record again.

IMPORTANT: A malformed record never fails the whole extraction.
It is dropped, logged and reported as an EdgeIssue.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, NamedTuple

import structlog

from splitbook.engine.errors import ValidationError
from splitbook.engine.money import ZERO, to_money
from splitbook.models.balance import DebtEdge, EdgeIssue, EdgeRef, SourceKind
from splitbook.models.records import ExpenseShare, LoanDirection, LoanShare, User

logger = structlog.get_logger(__name__)


class ExtractionResult(NamedTuple):
    edges: list[DebtEdge]
    issues: list[EdgeIssue]


def _checked_amount(ref: EdgeRef, amount: Decimal, places: int) -> Decimal:
    if not amount.is_finite():
        raise ValidationError(ref, f"Amount {amount} on {ref} is not a finite number")
    if amount < ZERO:
        raise ValidationError(ref, f"Amount {amount} on {ref} is negative")
    try:
        return to_money(amount, places)
    except InvalidOperation as e:
        raise ValidationError(
            ref, f"Amount {amount} on {ref} is too large to quantize to minor units"
        ) from e


def _check_parties(ref: EdgeRef, debtor: User, creditor: User) -> None:
    if debtor.id == creditor.id:
        raise ValidationError(
            ref, f"Debtor and creditor are the same user ({debtor.id}) on {ref}"
        )


def edge_from_expense_share(share: ExpenseShare, places: int = 2) -> DebtEdge:
    """Build the edge for one expense share. Raises ValidationError if malformed."""
    expense = share.expense
    ref = EdgeRef(
        source_kind=SourceKind.EXPENSE,
        source_id=expense.id,
        share_id=share.id,
    )
    debtor, creditor = share.participant, expense.creator
    _check_parties(ref, debtor, creditor)

    return DebtEdge(
        debtor=debtor,
        creditor=creditor,
        amount=_checked_amount(ref, share.share_amount, places),
        source_kind=ref.source_kind,
        source_id=ref.source_id,
        share_id=ref.share_id,
        settled=share.is_paid,
        created_at=expense.created_at,
        title=expense.title,
        category=expense.category,
    )


def edge_from_loan_share(share: LoanShare, places: int = 2) -> DebtEdge:
    """Build the edge for one loan share. Raises ValidationError if malformed."""
    loan = share.loan
    ref = EdgeRef(
        source_kind=SourceKind.LOAN,
        source_id=loan.id,
        share_id=share.id,
    )
    if loan.direction == LoanDirection.BORROW:
        debtor, creditor = loan.creator, share.counterparty
    else:
        debtor, creditor = share.counterparty, loan.creator
    _check_parties(ref, debtor, creditor)

    return DebtEdge(
        debtor=debtor,
        creditor=creditor,
        amount=_checked_amount(ref, share.amount, places),
        source_kind=ref.source_kind,
        source_id=ref.source_id,
        share_id=ref.share_id,
        settled=share.is_settled,
        created_at=loan.created_at,
        title=loan.title,
        category=loan.category,
        loan_direction=loan.direction,
    )


def extract_edges(
    viewing_user_id: str,
    expense_shares: Iterable[ExpenseShare],
    loan_shares: Iterable[LoanShare],
    places: int = 2,
) -> ExtractionResult:
    """
    Convert share records into debt edges.

    Records are expected to be scoped to viewing_user_id already;
    scoping is the record store's job. Output keeps input order,
    expense shares first.

    Returns:
        (edges, issues) - issues lists every record that was dropped
    """
    edges: list[DebtEdge] = []
    issues: list[EdgeIssue] = []

    builders = [
        (share, edge_from_expense_share) for share in expense_shares
    ] + [
        (share, edge_from_loan_share) for share in loan_shares
    ]

    for share, build in builders:
        try:
            edges.append(build(share, places))
        except ValidationError as e:
            logger.warning(
                "edge_rejected",
                viewing_user_id=viewing_user_id,
                ref=str(e.ref),
                reason=str(e),
            )
            issues.append(e.to_issue())

    return ExtractionResult(edges=edges, issues=issues)
