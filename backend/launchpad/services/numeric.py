"""
Integer helpers shared by the ledgers.

All amounts are non-negative integers in the smallest unit; every division
truncates unless stated otherwise.
"""

from typing import Sequence

from launchpad.core.constants import MAX_PAGE_LIMIT, ONE_USD, UNGRADED_TIER
from launchpad.core.exceptions import CollaboratorError, InvalidConfig


def _check_rate(rate: int) -> None:
    if rate <= 0:
        raise CollaboratorError(f"Oracle returned a non-positive rate: {rate}")


def usd_from_native(native_amount: int, rate: int) -> int:
    """USD value of ``native_amount`` at ``rate`` (USD per native unit * ONE_USD)."""
    _check_rate(rate)
    return native_amount * rate // ONE_USD


def native_from_usd(usd_amount: int, rate: int, round_up: bool = True) -> int:
    """
    Native amount worth ``usd_amount``.

    Rounded up by one unit when truncation would make the result worth less
    than ``usd_amount``, unless ``round_up`` is off.
    """
    _check_rate(rate)
    native_amount = usd_amount * ONE_USD // rate
    if round_up and usd_from_native(native_amount, rate) < usd_amount:
        native_amount += 1
    return native_amount


def tier_by_deposit(thresholds: Sequence[int], deposit: int) -> int:
    """
    Best tier whose threshold ``deposit`` meets (>=), or 0 below the lowest.

    ``thresholds`` are ordered from tier 1 (highest) down.
    """
    for index, threshold in enumerate(thresholds):
        if deposit >= threshold:
            return index + 1
    return UNGRADED_TIER


def ladder_cap(basis: Sequence[int], tier: int, scale: int = 1) -> int:
    """
    Cumulative payment cap of ``tier`` on a ladder.

    ``basis[0]`` belongs to tier 1. The registry ladder is used with
    ``scale=1``; a per-tier token allocation is turned into a payment cap
    by scaling it with the sale price.
    """
    if not 1 <= tier <= len(basis):
        raise InvalidConfig(f"Tier {tier} is outside the ladder 1..{len(basis)}")
    return int(basis[tier - 1]) * scale


def validate_descending(values: Sequence[int], name: str) -> list[int]:
    """Coerce to ints and require a non-empty, strictly decreasing, positive list."""
    if not values:
        raise InvalidConfig(f"{name} array is empty")
    try:
        coerced = [int(v) for v in values]
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"{name} must be integers") from e
    if any(v <= 0 for v in coerced):
        raise InvalidConfig(f"{name} must be positive")
    for prev, nxt in zip(coerced, coerced[1:]):
        if prev <= nxt:
            raise InvalidConfig(f"Specify {name} in decreasing order")
    return coerced


def validate_periods(periods: Sequence[int], expected: int, name: str = "lock_periods") -> list[int]:
    if len(periods) != expected:
        raise InvalidConfig(f"{name} must have {expected} entries, got {len(periods)}")
    try:
        coerced = [int(p) for p in periods]
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"{name} must be integers") from e
    if any(p < 0 for p in coerced):
        raise InvalidConfig(f"{name} cannot be negative")
    return coerced


def page_bounds(start: int, limit: int | None, default: int) -> tuple[int, int]:
    """Normalise a (start, limit) pair for offset/limit queries."""
    if start < 0:
        raise InvalidConfig("start cannot be negative")
    if limit is None:
        limit = default
    if limit <= 0:
        raise InvalidConfig("limit must be positive")
    return start, min(limit, MAX_PAGE_LIMIT)
