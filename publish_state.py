"""Draft / Published lifecycle of a portfolio.

Every save lands the portfolio in Draft, including saves of a published
portfolio: editing live content takes it offline until it is published again.
Publishing stamps ``published_at``; publishing twice re-stamps it.
"""
import enum
from datetime import datetime, timezone
from typing import Optional

import models


class PublishState(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class PublishEvent(str, enum.Enum):
    SAVE = "save"
    PUBLISH = "publish"


TRANSITIONS = {
    (PublishState.DRAFT, PublishEvent.SAVE): PublishState.DRAFT,
    (PublishState.PUBLISHED, PublishEvent.SAVE): PublishState.DRAFT,
    (PublishState.DRAFT, PublishEvent.PUBLISH): PublishState.PUBLISHED,
    (PublishState.PUBLISHED, PublishEvent.PUBLISH): PublishState.PUBLISHED,
}


def state_of(portfolio: models.Portfolio) -> PublishState:
    return PublishState.PUBLISHED if portfolio.published else PublishState.DRAFT


def next_state(current: PublishState, event: PublishEvent) -> PublishState:
    return TRANSITIONS[(current, event)]


def apply_event(
    portfolio: models.Portfolio,
    event: PublishEvent,
    now: Optional[datetime] = None,
) -> PublishState:
    """Move ``portfolio`` along ``event`` in place and return its new state."""
    new_state = next_state(state_of(portfolio), event)
    portfolio.published = new_state is PublishState.PUBLISHED
    if event is PublishEvent.PUBLISH:
        portfolio.published_at = now or datetime.now(timezone.utc)
    return new_state
