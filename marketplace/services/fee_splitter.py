"""
Platform fee split.

Amounts are integer cents and the rate is a Decimal fraction. The fee is
rounded half-up to the nearest cent and the payout is the remainder, so the
two parts always add back up to the amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

DEFAULT_PLATFORM_FEE_RATE = Decimal("0.15")

_ONE_CENT = Decimal("1")

RateLike = Union[Decimal, float, int, str]


@dataclass(frozen=True)
class FeeSplit:
    platform_fee: int
    instructor_payout: int

    @property
    def amount(self) -> int:
        return self.platform_fee + self.instructor_payout


def _to_decimal(rate: RateLike) -> Decimal:
    if isinstance(rate, Decimal):
        return rate
    # str() first so 0.15 becomes Decimal("0.15"), not its binary expansion
    return Decimal(str(rate))


def split_fee(amount_cents: int, rate: RateLike = DEFAULT_PLATFORM_FEE_RATE) -> FeeSplit:
    """
    Split ``amount_cents`` into platform fee and instructor payout.

    >>> split_fee(10000, Decimal("0.15"))
    FeeSplit(platform_fee=1500, instructor_payout=8500)
    """
    fee = (Decimal(amount_cents) * _to_decimal(rate)).quantize(_ONE_CENT, rounding=ROUND_HALF_UP)
    platform_fee = int(fee)
    return FeeSplit(platform_fee=platform_fee, instructor_payout=amount_cents - platform_fee)


def dollars_to_cents(amount: RateLike) -> int:
    """Convert a dollar price (``Numeric(10, 2)``) to integer cents."""
    return int((_to_decimal(amount) * 100).quantize(_ONE_CENT, rounding=ROUND_HALF_UP))
