"""Pydantic schemas for da_referral API."""

from pydantic import BaseModel, Field

from src.da_common.cents import cents_to_display
from src.da_common.datetime_utils import iso_or_none
from src.da_referral.domain.models import Referral


class ReferralCreateRequest(BaseModel):
    agent_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    is_manual_assignment: bool = False


class ReferralResponse(BaseModel):
    id: str
    agent_id: str
    customer_id: str
    is_active: bool
    is_manual_assignment: bool
    agent_total_earnings_cents: int
    agent_total_earnings_display: str
    created_at: str | None

    @classmethod
    def from_domain(cls, referral: Referral) -> "ReferralResponse":
        return cls(
            id=referral.id,
            agent_id=referral.agent_id,
            customer_id=referral.customer_id,
            is_active=referral.is_active,
            is_manual_assignment=referral.is_manual_assignment,
            agent_total_earnings_cents=referral.agent_total_earnings,
            agent_total_earnings_display=cents_to_display(referral.agent_total_earnings),
            created_at=iso_or_none(referral.created_at),
        )


class AgentEarningsResponse(BaseModel):
    agent_id: str
    total_earnings_cents: int
    total_earnings_display: str
    referral_count: int
