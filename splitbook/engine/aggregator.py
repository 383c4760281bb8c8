"""
Balance Aggregator

Reduces edges to the viewing user's two gross totals.

CRITICAL: The totals are GROSS. If I owe Alice 100 and Alice owes me 40,
total_owed_by_me is 100 and total_owed_to_me is 40 - never a net 60.
Netting is a presentation choice made downstream (see grouper.net_by_counterparty).
"""

from typing import Iterable

from splitbook.engine.money import ZERO
from splitbook.models.balance import BalanceTotals, DebtEdge


def aggregate_totals(viewing_user_id: str, edges: Iterable[DebtEdge]) -> BalanceTotals:
    """
    Sum unsettled edges into owed-by-me and owed-to-me.

    Edges that do not involve viewing_user_id contribute nothing.
    """
    owed_by_me = ZERO
    owed_to_me = ZERO

    for edge in edges:
        if edge.settled:
            continue
        if edge.debtor.id == viewing_user_id:
            owed_by_me += edge.amount
        elif edge.creditor.id == viewing_user_id:
            owed_to_me += edge.amount

    return BalanceTotals(
        total_owed_by_me=owed_by_me,
        total_owed_to_me=owed_to_me,
    )
