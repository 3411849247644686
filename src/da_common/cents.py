"""Integer arithmetic utilities for cents-based money.

All amounts and balances use int (cents). Plan percentages arrive as
percent-of-100 Decimals and are converted to integer basis points before
any arithmetic, so no float ever touches money.
"""

from decimal import Decimal

BPS_PER_PERCENT = 100
FULL_BPS = 100 * BPS_PER_PERCENT


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def percent_to_bps(percent: Decimal | int) -> int:
    """Convert a percent-of-100 value to basis points: Decimal('62.5') -> 6250.

    Raises ValueError for values finer than one basis point.
    """
    bps = Decimal(percent) * BPS_PER_PERCENT
    if bps != bps.to_integral_value():
        raise ValueError(f"Percentage has sub-basis-point precision: {percent}")
    return int(bps)


def apply_bps(amount: int, bps: int) -> int:
    """Return amount * bps / 10000 rounded half away from zero.

    Works on signed amounts so a loss splits symmetrically with a gain.
    """
    if amount == 0 or bps == 0:
        return 0
    magnitude = (abs(amount) * bps + FULL_BPS // 2) // FULL_BPS
    return magnitude if amount > 0 else -magnitude
