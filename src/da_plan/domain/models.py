"""Domain models for da_plan — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.da_common.cents import percent_to_bps
from src.da_common.errors import InvalidShareError


@dataclass
class Plan:
    id: str
    name: str
    min_deposit: int                      # cents
    max_deposit: int                      # cents
    max_accounts: int
    profit_sharing_customer: Decimal      # percent of 100, e.g. Decimal("70")
    profit_sharing_platform: Decimal      # percent of 100, e.g. Decimal("30")
    upfront_fee: int                      # cents
    visibility: str = "PUBLIC"
    confirmation_text: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def share_bps(self) -> tuple[int, int]:
        """Return (customer_bps, platform_bps) after validating both percentages.

        Raises InvalidShareError if either is outside [0, 100] or finer than a basis point.
        """
        return (
            validate_share("profit_sharing_customer", self.profit_sharing_customer),
            validate_share("profit_sharing_platform", self.profit_sharing_platform),
        )


def validate_share(field: str, percent: Decimal | int) -> int:
    if not (0 <= percent <= 100):
        raise InvalidShareError(f"{field}={percent} is outside [0, 100]")
    try:
        return percent_to_bps(percent)
    except ValueError as exc:
        raise InvalidShareError(f"{field}={percent}: {exc}") from None
