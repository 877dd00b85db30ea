import enum
from typing import Optional

import structlog

import models

logger = structlog.get_logger(__name__)

# Plans without a portfolio cap
UNCAPPED_PLANS = frozenset({models.PlanTier.PRO, models.PlanTier.ENTERPRISE})
FREE_PORTFOLIO_LIMIT = 1


class QuotaDecision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


def is_free_tier(subscription: Optional[models.Subscription]) -> bool:
    """Users without a subscription row count as free."""
    return subscription is None or subscription.plan not in UNCAPPED_PLANS


def can_create(
    user_id: int,
    subscription: Optional[models.Subscription],
    existing_portfolio_count: int,
    is_new_request: bool,
) -> QuotaDecision:
    """Decide whether a save may go ahead under the caller's plan.

    Only a new portfolio (no id supplied) by a free-tier user who already
    owns one is denied. Updates are always allowed.
    """
    if (
        is_new_request
        and is_free_tier(subscription)
        and existing_portfolio_count >= FREE_PORTFOLIO_LIMIT
    ):
        logger.info(
            "Portfolio quota reached",
            user_id=user_id,
            existing_portfolio_count=existing_portfolio_count,
        )
        return QuotaDecision.DENY
    return QuotaDecision.ALLOW
