import pytest

import models
from quota import QuotaDecision, can_create, is_free_tier


def _subscription(plan: models.PlanTier) -> models.Subscription:
    return models.Subscription(user_id=1, plan=plan, status=models.SubscriptionStatus.ACTIVE)


def test_free_user_first_portfolio_is_allowed():
    assert can_create(1, _subscription(models.PlanTier.FREE), 0, True) is QuotaDecision.ALLOW


def test_free_user_second_portfolio_is_denied():
    assert can_create(1, _subscription(models.PlanTier.FREE), 1, True) is QuotaDecision.DENY


def test_updates_are_always_allowed():
    assert can_create(1, _subscription(models.PlanTier.FREE), 5, False) is QuotaDecision.ALLOW


@pytest.mark.parametrize("plan", [models.PlanTier.PRO, models.PlanTier.ENTERPRISE])
def test_paid_plans_are_uncapped(plan):
    assert can_create(1, _subscription(plan), 10, True) is QuotaDecision.ALLOW


def test_missing_subscription_counts_as_free():
    assert is_free_tier(None)
    assert can_create(1, None, 1, True) is QuotaDecision.DENY


def test_downgraded_user_over_the_cap_cannot_create():
    # Portfolios made on a paid plan survive a downgrade but block new ones
    assert can_create(1, _subscription(models.PlanTier.FREE), 3, True) is QuotaDecision.DENY
