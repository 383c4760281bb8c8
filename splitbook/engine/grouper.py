"""
Settlement Grouper

Groups the viewing user's unsettled edges by counterparty, one group per
(counterparty, direction), for the settle-up screen.

GUARANTEES:
- A group's total is exactly the sum of the edges it lists.
- Empty groups are never emitted.
- The same counterparty may appear once in each direction; the two
  groups are never merged or netted here.
- Edges whose counterparty has no name or email are dropped from the
  groups and reported. They still count in the gross totals, which do
  not need identity.
"""

from decimal import Decimal
from typing import Iterable, NamedTuple

import structlog

from splitbook.engine.errors import MissingPartyError
from splitbook.engine.money import ZERO
from splitbook.models.balance import (
    BalanceDirection,
    CounterpartyGroup,
    DebtEdge,
    EdgeIssue,
    NetPosition,
)
from splitbook.models.records import User

logger = structlog.get_logger(__name__)


class GroupingResult(NamedTuple):
    owe_groups: list[CounterpartyGroup]
    owed_groups: list[CounterpartyGroup]
    issues: list[EdgeIssue]


def _counterparty_order(user: User) -> tuple[str, str]:
    return (user.display_name.casefold(), user.id)


def _check_identity(edge: DebtEdge, counterparty: User) -> None:
    if not counterparty.has_identity:
        missing = [
            field for field in ("name", "email")
            if not getattr(counterparty, field)
        ]
        raise MissingPartyError(
            edge.ref,
            f"Counterparty {counterparty.id} on {edge.ref} has no {' or '.join(missing)}",
        )


def _build_groups(
    buckets: dict[str, list[DebtEdge]],
    parties: dict[str, User],
    direction: BalanceDirection,
) -> list[CounterpartyGroup]:
    groups = []
    for party_id, members in buckets.items():
        if not members:
            continue
        members = sorted(members, key=lambda e: e.sort_key)
        groups.append(CounterpartyGroup(
            counterparty=parties[party_id],
            direction=direction,
            total=sum((e.amount for e in members), ZERO),
            edges=members,
        ))
    groups.sort(key=lambda g: _counterparty_order(g.counterparty))
    return groups


def group_by_counterparty(
    viewing_user_id: str,
    edges: Iterable[DebtEdge],
    hide_zero_amount_edges: bool = True,
) -> GroupingResult:
    """
    Partition unsettled edges into I-owe and owed-to-me groups per counterparty.

    Args:
        viewing_user_id: The user the balances are viewed from
        edges: Edges from the extractor
        hide_zero_amount_edges: Leave zero-amount edges out of the groups

    Returns:
        (owe_groups, owed_groups, issues)
    """
    owe: dict[str, list[DebtEdge]] = {}
    owed: dict[str, list[DebtEdge]] = {}
    parties: dict[str, User] = {}
    issues: list[EdgeIssue] = []

    for edge in edges:
        if edge.settled:
            continue
        if hide_zero_amount_edges and edge.amount == ZERO:
            continue

        if edge.debtor.id == viewing_user_id:
            bucket, counterparty = owe, edge.creditor
        elif edge.creditor.id == viewing_user_id:
            bucket, counterparty = owed, edge.debtor
        else:
            continue

        try:
            _check_identity(edge, counterparty)
        except MissingPartyError as e:
            logger.warning(
                "counterparty_missing",
                viewing_user_id=viewing_user_id,
                ref=str(e.ref),
                reason=str(e),
            )
            issues.append(e.to_issue())
            continue

        # First complete record wins as the group's display identity
        parties.setdefault(counterparty.id, counterparty)
        bucket.setdefault(counterparty.id, []).append(edge)

    return GroupingResult(
        owe_groups=_build_groups(owe, parties, BalanceDirection.I_OWE),
        owed_groups=_build_groups(owed, parties, BalanceDirection.OWED_TO_ME),
        issues=issues,
    )


def net_by_counterparty(
    owe_groups: Iterable[CounterpartyGroup],
    owed_groups: Iterable[CounterpartyGroup],
) -> list[NetPosition]:
    """
    Combine the two directional views into one net position per counterparty.

    Pure presentation helper: net = owed_to_me - i_owe.
    """
    parties: dict[str, User] = {}
    i_owe: dict[str, Decimal] = {}
    owed_to_me: dict[str, Decimal] = {}

    for group in owe_groups:
        parties.setdefault(group.counterparty.id, group.counterparty)
        i_owe[group.counterparty.id] = i_owe.get(group.counterparty.id, ZERO) + group.total
    for group in owed_groups:
        parties.setdefault(group.counterparty.id, group.counterparty)
        owed_to_me[group.counterparty.id] = owed_to_me.get(group.counterparty.id, ZERO) + group.total

    positions = [
        NetPosition(
            counterparty=party,
            owed_to_me=owed_to_me.get(party_id, ZERO),
            i_owe=i_owe.get(party_id, ZERO),
        )
        for party_id, party in parties.items()
    ]
    positions.sort(key=lambda p: _counterparty_order(p.counterparty))
    return positions
