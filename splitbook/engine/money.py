"""
Fixed-point money helpers.

All amounts inside the engine are Decimals quantized to the currency's
minor unit (paise for INR). Summation of quantized Decimals is exact, so
totals do not drift and do not depend on summation order.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import NamedTuple, Union

MoneyLike = Union[Decimal, int, float, str]

ZERO = Decimal("0")


class SplitAmounts(NamedTuple):
    """Result of an equal split. The creator absorbs the rounding remainder."""
    creator_share: Decimal
    participant_share: Decimal


def minor_unit(places: int = 2) -> Decimal:
    """Smallest representable amount, e.g. Decimal('0.01') for two places."""
    return Decimal(1).scaleb(-places)


def to_money(value: MoneyLike, places: int = 2) -> Decimal:
    """
    Quantize a value to minor units (ROUND_HALF_UP).

    Floats go through str() first so 0.1 becomes Decimal('0.1'),
    not its binary approximation.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(minor_unit(places), rounding=ROUND_HALF_UP)


def split_equally(
    amount: MoneyLike,
    participant_count: int,
    places: int = 2,
) -> SplitAmounts:
    """
    Split an expense between its creator and participant_count others.

    Every participant gets amount / (participant_count + 1) truncated to
    minor units; the creator's implicit share is whatever is left, so
    creator_share + participant_count * participant_share == amount exactly
    and creator_share is never below participant_share.
    """
    total = to_money(amount, places)
    if total < ZERO:
        raise ValueError(f"Cannot split a negative amount: {total}")
    if participant_count < 0:
        raise ValueError(f"participant_count must be >= 0, got {participant_count}")

    if participant_count == 0:
        return SplitAmounts(creator_share=total, participant_share=ZERO)

    participant_share = (total / (participant_count + 1)).quantize(
        minor_unit(places), rounding=ROUND_DOWN
    )
    creator_share = total - participant_share * participant_count
    return SplitAmounts(creator_share=creator_share, participant_share=participant_share)
