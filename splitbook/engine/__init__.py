"""Balance engine package."""

from splitbook.engine.aggregator import aggregate_totals
from splitbook.engine.balances import compute_balances
from splitbook.engine.errors import (
    EngineError,
    MissingPartyError,
    UpstreamUnavailable,
    ValidationError,
)
from splitbook.engine.extractor import (
    ExtractionResult,
    edge_from_expense_share,
    edge_from_loan_share,
    extract_edges,
)
from splitbook.engine.grouper import (
    GroupingResult,
    group_by_counterparty,
    net_by_counterparty,
)
from splitbook.engine.money import SplitAmounts, minor_unit, split_equally, to_money

__all__ = [
    # Pipeline
    "aggregate_totals",
    "compute_balances",
    "extract_edges",
    "edge_from_expense_share",
    "edge_from_loan_share",
    "group_by_counterparty",
    "net_by_counterparty",
    "ExtractionResult",
    "GroupingResult",
    # Money
    "SplitAmounts",
    "minor_unit",
    "split_equally",
    "to_money",
    # Exceptions
    "EngineError",
    "MissingPartyError",
    "UpstreamUnavailable",
    "ValidationError",
]
