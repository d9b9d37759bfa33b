"""Card ranking for Glide Guard.

Pure, stateless helpers that decide which card is most urgent. The same
ordering drives the allocator's slice order and the "what to do first"
list shown to the user. Nothing is persisted: ranks are recomputed from
scratch on every call.

Default order, first differing criterion wins:
    1. Days until the statement closes, soonest first (unknown sorts last)
    2. Over-target percentage, largest first
    3. APR, highest first
    4. Credit limit, smallest first
"""

import math
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from functools import cmp_to_key
from typing import Optional

from glidemoney_core.config import GlideGuardSettings
from glidemoney_core.models import (
    ZERO,
    CardPosition,
    CardProfile,
    CardStatus,
    PaymentPlan,
    UserMoneyConfig,
    ensure_utc,
)

SECONDS_PER_DAY = 24 * 60 * 60


# =============================================================================
# CARD MATH
# =============================================================================

def _round_whole(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utilization_percent(position: CardPosition) -> int:
    """Posted balance as a whole percentage of the limit."""
    card = position.card
    return max(0, _round_whole(card.posted_balance / card.limit * 100))


def target_percent(position: CardPosition) -> int:
    """Target utilization as a whole percentage."""
    return _round_whole(position.target_utilization * 100)


def over_target_percent(position: CardPosition) -> int:
    """Percentage points above target, never negative."""
    return max(0, utilization_percent(position) - target_percent(position))


def gap_to_target(position: CardPosition) -> int:
    """Whole dollars to pay to bring the card back to target."""
    card = position.card
    gap = card.posted_balance - position.target_utilization * card.limit
    return max(0, _round_whole(gap))


def needs_payment(position: CardPosition) -> bool:
    """A card needs payment when one is recommended and it sits above target."""
    return (
        position.recommended_payment > ZERO
        and utilization_percent(position) > target_percent(position)
    )


def is_card_healthy(position: CardPosition) -> bool:
    return not needs_payment(position)


def days_to_close(card: CardProfile, now: datetime) -> float:
    """Whole days (rounded up) until the next statement close.

    Cards without a known close date return infinity so they sort last.
    """
    if card.next_close_at is None:
        return math.inf
    seconds = (card.next_close_at - ensure_utc(now)).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


# =============================================================================
# ORDERING
# =============================================================================

def _sign(value) -> int:
    return (value > 0) - (value < 0)


def compare_cards(a: CardPosition, b: CardPosition, now: datetime) -> int:
    """Three-way comparison: negative when ``a`` is more urgent than ``b``."""
    days_a = days_to_close(a.card, now)
    days_b = days_to_close(b.card, now)
    if days_a != days_b:
        return -1 if days_a < days_b else 1

    over_a = utilization_percent(a) - target_percent(a)
    over_b = utilization_percent(b) - target_percent(b)
    if over_a != over_b:
        return _sign(over_b - over_a)

    if a.card.apr != b.card.apr:
        return _sign(b.card.apr - a.card.apr)

    return _sign(a.card.limit - b.card.limit)


def sort_cards(positions: Iterable[CardPosition], now: datetime) -> list[CardPosition]:
    """Return positions most urgent first. Full ties keep their input order."""
    return sorted(positions, key=cmp_to_key(lambda a, b: compare_cards(a, b, now)))


def select_top_action(
    positions: Sequence[CardPosition],
    now: datetime,
) -> Optional[CardPosition]:
    """The single card to act on first.

    An explicit ``top_action`` flag wins. Otherwise the most urgent card
    that needs payment is chosen; ``None`` means nothing needs doing.
    """
    for position in positions:
        if position.top_action:
            return position
    for position in sort_cards(positions, now):
        if needs_payment(position):
            return position
    return None


def action_queue(
    positions: Sequence[CardPosition],
    now: datetime,
    size: Optional[int] = None,
) -> list[CardPosition]:
    """The next cards needing payment after the top action, capped at ``size``.

    Without an explicit ``size`` the cap comes from
    ``GlideGuardSettings.action_queue_size``.
    """
    if size is None:
        size = GlideGuardSettings().action_queue_size
    top = select_top_action(positions, now)
    remaining = [
        p for p in positions
        if p is not top and not p.top_action and needs_payment(p)
    ]
    return sort_cards(remaining, now)[:size]


def card_status(position: CardPosition, now: datetime) -> CardStatus:
    """OK, PAY, or URGENT when the statement closes within a day."""
    if not needs_payment(position):
        return CardStatus.OK
    if days_to_close(position.card, now) <= 1:
        return CardStatus.URGENT
    return CardStatus.PAY


def positions_from_plan(
    cards: Iterable[CardProfile],
    plan: PaymentPlan,
    config: UserMoneyConfig,
) -> list[CardPosition]:
    """Join a payment plan back onto the cards it was computed for."""
    positions = []
    for card in cards:
        payment = plan.slice_for(card.id)
        positions.append(
            CardPosition(
                card=card,
                target_utilization=card.target_utilization or config.target_utilization,
                recommended_payment=payment.amount if payment else ZERO,
            )
        )
    return positions
