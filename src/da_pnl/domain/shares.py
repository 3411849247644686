"""Per-user split of a PnL figure.

    customer = total * customer% / 100
    platform = total * platform% / 100
    agent    = platform * 30 / 100   (active referral and a positive platform share only)
    retained = platform - agent

Percentages become basis points before any arithmetic and every product is
rounded half away from zero to the cent. When the plan percentages sum to
100 the customer share takes the residual, so customer + platform == total
exactly; retained always takes the agent residual, so agent + retained ==
platform exactly.
"""

from src.da_common.cents import FULL_BPS, apply_bps
from src.da_pnl.domain.models import ZERO_SHARE, UserShare
from src.da_plan.domain.models import Plan
from src.da_referral.domain.models import Referral

AGENT_OVERRIDE_BPS = 3000


def split_pnl(
    total_pnl: int,
    customer_bps: int,
    platform_bps: int,
    agent_active: bool = False,
) -> UserShare:
    platform = apply_bps(total_pnl, platform_bps)
    if customer_bps + platform_bps == FULL_BPS:
        customer = total_pnl - platform
    else:
        customer = apply_bps(total_pnl, customer_bps)

    # A loss never produces an agent debit: earnings only ever grow
    agent = apply_bps(platform, AGENT_OVERRIDE_BPS) if agent_active and platform > 0 else 0
    return UserShare(
        customer_share=customer,
        platform_share=platform,
        agent_earnings=agent,
        divine_algo_retained=platform - agent,
    )


def compute_user_share(
    total_pnl: int, plan: Plan | None, referral: Referral | None
) -> UserShare:
    """Split total_pnl under plan; no plan means 0% / 0%.

    Raises InvalidShareError if a plan percentage is outside [0, 100].
    """
    if plan is None:
        return ZERO_SHARE
    customer_bps, platform_bps = plan.share_bps()
    agent_active = referral is not None and referral.is_active
    return split_pnl(total_pnl, customer_bps, platform_bps, agent_active)
