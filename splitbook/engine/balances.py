"""
Balance pipeline: Extractor -> Aggregator -> Grouper.

DESIGN DECISION: This is a pure function of its inputs.
It never touches storage, settings or session state, so it can be called
from any number of concurrent requests and can later sit behind a cache
(invalidate-on-write) without changing.
"""

from typing import Iterable

from splitbook.engine.aggregator import aggregate_totals
from splitbook.engine.extractor import extract_edges
from splitbook.engine.grouper import group_by_counterparty
from splitbook.models.balance import BalanceSummary
from splitbook.models.records import ExpenseShare, LoanShare


def compute_balances(
    viewing_user_id: str,
    expense_shares: Iterable[ExpenseShare],
    loan_shares: Iterable[LoanShare],
    currency: str = "INR",
    places: int = 2,
    hide_zero_amount_edges: bool = True,
) -> BalanceSummary:
    """
    Compute the viewing user's balances from a snapshot of share records.

    Returns:
        BalanceSummary with gross totals, per-counterparty groups and
        every record that had to be dropped along the way
    """
    extraction = extract_edges(viewing_user_id, expense_shares, loan_shares, places=places)
    totals = aggregate_totals(viewing_user_id, extraction.edges)
    grouping = group_by_counterparty(
        viewing_user_id,
        extraction.edges,
        hide_zero_amount_edges=hide_zero_amount_edges,
    )

    return BalanceSummary(
        viewing_user_id=viewing_user_id,
        currency=currency,
        total_owed_by_me=totals.total_owed_by_me,
        total_owed_to_me=totals.total_owed_to_me,
        owe_groups=grouping.owe_groups,
        owed_groups=grouping.owed_groups,
        issues=[*extraction.issues, *grouping.issues],
    )
