"""Tests for card ranking and the action list."""

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from glidemoney_core import (
    CardPosition,
    CardProfile,
    CardStatus,
    PaymentPlan,
    PaymentSlice,
    UserMoneyConfig,
    action_queue,
    card_status,
    compare_cards,
    days_to_close,
    gap_to_target,
    is_card_healthy,
    needs_payment,
    over_target_percent,
    positions_from_plan,
    select_top_action,
    sort_cards,
    target_percent,
    utilization_percent,
)


NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


def position(
    card_id: str,
    limit,
    balance,
    *,
    apr="0",
    close_in_days=None,
    target="0.30",
    payment="50",
    top_action=False,
) -> CardPosition:
    """Build a CardPosition measured against NOW."""
    close = NOW + timedelta(days=close_in_days) if close_in_days is not None else None
    card = CardProfile(
        id=card_id,
        limit=Decimal(str(limit)),
        posted_balance=Decimal(str(balance)),
        apr=Decimal(apr),
        next_close_at=close,
    )
    return CardPosition(
        card=card,
        target_utilization=Decimal(target),
        recommended_payment=Decimal(payment),
        top_action=top_action,
    )


def ids(positions) -> list[str]:
    return [p.card.id for p in positions]


# =============================================================================
# CARD MATH
# =============================================================================

class TestCardMath:
    """Test suite for utilization and gap helpers."""

    def test_utilization_percent(self):
        """Posted balance over limit as a whole percentage."""
        assert utilization_percent(position("a", 2000, 960)) == 48
        assert utilization_percent(position("b", 300, 100)) == 33
        assert utilization_percent(position("c", 1000, 0)) == 0

    def test_target_percent(self):
        """Target ratio as a whole percentage."""
        assert target_percent(position("a", 1000, 0, target="0.30")) == 30
        assert target_percent(position("a", 1000, 0, target="0.10")) == 10

    def test_over_target_percent(self):
        """Points above target, floored at zero."""
        assert over_target_percent(position("a", 2000, 960)) == 18
        assert over_target_percent(position("b", 2000, 100)) == 0

    def test_gap_to_target(self):
        """Whole dollars to bring the card back to target."""
        assert gap_to_target(position("a", 2000, 960)) == 360
        assert gap_to_target(position("b", 2000, 100)) == 0

    def test_gap_rounds_half_up(self):
        """A half dollar gap rounds up."""
        assert gap_to_target(position("a", 1000, "400.50")) == 101

    def test_needs_payment(self):
        """Needs both a recommended payment and to be over target."""
        assert needs_payment(position("a", 2000, 960))
        assert not needs_payment(position("a", 2000, 960, payment="0"))
        assert not needs_payment(position("b", 2000, 100))

    def test_is_card_healthy(self):
        """Healthy is the opposite of needing payment."""
        assert is_card_healthy(position("b", 2000, 100))
        assert not is_card_healthy(position("a", 2000, 960))


class TestDaysToClose:
    """Test suite for days_to_close."""

    def test_rounds_up_partial_days(self):
        """36 hours away is two days."""
        card = position("a", 1000, 500).card.model_copy(
            update={"next_close_at": NOW + timedelta(hours=36)}
        )

        assert days_to_close(card, NOW) == 2

    def test_unknown_close_is_infinite(self):
        """No close date sorts after every known one."""
        assert days_to_close(position("a", 1000, 500).card, NOW) == math.inf

    def test_naive_now_treated_as_utc(self):
        """A naive 'now' compares as UTC."""
        card = position("a", 1000, 500, close_in_days=3).card

        assert days_to_close(card, datetime(2024, 6, 3, 12, 0)) == 3


# =============================================================================
# ORDERING
# =============================================================================

class TestOrdering:
    """Test suite for compare_cards and sort_cards."""

    def test_sooner_close_beats_larger_overage(self):
        """A card closing tomorrow outranks one far more over target."""
        closes_soon = position("soon", 1000, 350, close_in_days=1)
        way_over = position("over", 1000, 900, close_in_days=5)

        assert ids(sort_cards([way_over, closes_soon], NOW)) == ["soon", "over"]

    def test_overage_breaks_close_ties(self):
        """Same close day: further over target first."""
        mild = position("mild", 1000, 400, close_in_days=3)
        severe = position("severe", 1000, 800, close_in_days=3)

        assert ids(sort_cards([mild, severe], NOW)) == ["severe", "mild"]

    def test_apr_breaks_overage_ties(self):
        """Same utilization: higher APR first."""
        cheap = position("cheap", 1000, 500, apr="12.99")
        pricey = position("pricey", 1000, 500, apr="24.99")

        assert ids(sort_cards([cheap, pricey], NOW)) == ["pricey", "cheap"]

    def test_limit_breaks_apr_ties(self):
        """Same APR: smaller limit first."""
        big = position("big", 2000, 1000, apr="19.99")
        small = position("small", 1000, 500, apr="19.99")

        assert ids(sort_cards([big, small], NOW)) == ["small", "big"]

    def test_unknown_close_sorts_last(self):
        """A card with no close date waits behind one closing in weeks."""
        unknown = position("unknown", 1000, 900)
        known = position("known", 1000, 310, close_in_days=20)

        assert ids(sort_cards([unknown, known], NOW)) == ["known", "unknown"]

    def test_signed_overage_orders_under_target_cards(self):
        """Cards under target still order by how close they are to it."""
        near = position("near", 1000, 250)
        far = position("far", 1000, 50)

        assert ids(sort_cards([far, near], NOW)) == ["near", "far"]

    def test_full_ties_keep_input_order(self):
        """Sorting is stable."""
        first = position("first", 1000, 500)
        second = position("second", 1000, 500)

        assert compare_cards(first, second, NOW) == 0
        assert ids(sort_cards([first, second], NOW)) == ["first", "second"]
        assert ids(sort_cards([second, first], NOW)) == ["second", "first"]

    def test_compare_is_antisymmetric(self):
        """Swapping arguments flips the sign."""
        a = position("a", 1000, 900, close_in_days=2)
        b = position("b", 1000, 400, close_in_days=7)

        assert compare_cards(a, b, NOW) < 0
        assert compare_cards(b, a, NOW) > 0


# =============================================================================
# ACTIONS
# =============================================================================

class TestTopAction:
    """Test suite for select_top_action."""

    def test_flag_wins(self):
        """An explicit top_action flag beats ranking."""
        urgent = position("urgent", 1000, 900, close_in_days=1)
        flagged = position("flagged", 1000, 400, close_in_days=20, top_action=True)

        assert select_top_action([urgent, flagged], NOW) is flagged

    def test_first_needing_payment_in_rank_order(self):
        """Without a flag, the most urgent card needing payment is picked."""
        healthy_but_soon = position("healthy", 1000, 100, close_in_days=1)
        later = position("later", 1000, 600, close_in_days=9)
        sooner = position("sooner", 1000, 400, close_in_days=4)

        top = select_top_action([healthy_but_soon, later, sooner], NOW)

        assert top.card.id == "sooner"

    def test_nothing_to_do(self):
        """All cards healthy means no top action."""
        positions = [position("a", 1000, 100), position("b", 1000, 900, payment="0")]

        assert select_top_action(positions, NOW) is None


class TestActionQueue:
    """Test suite for action_queue."""

    @pytest.fixture
    def over_target_positions(self) -> list[CardPosition]:
        """Five cards needing payment, closing on days 1 through 5."""
        return [
            position(f"card-{day}", 1000, 500 + day * 10, close_in_days=day)
            for day in (5, 3, 1, 4, 2)
        ]

    def test_excludes_top_and_caps_at_three(self, over_target_positions):
        """The queue holds the next three after the top action."""
        queue = action_queue(over_target_positions, NOW)

        assert ids(queue) == ["card-2", "card-3", "card-4"]

    def test_custom_size(self, over_target_positions):
        """The cap is configurable."""
        queue = action_queue(over_target_positions, NOW, size=1)

        assert ids(queue) == ["card-2"]

    def test_size_from_settings(self, over_target_positions, monkeypatch):
        """Without an explicit size the configured queue size applies."""
        monkeypatch.setenv("GLIDEMONEY_GUARD_ACTION_QUEUE_SIZE", "1")

        queue = action_queue(over_target_positions, NOW)

        assert ids(queue) == ["card-2"]

    def test_flagged_card_not_queued(self, over_target_positions):
        """A flagged top action is never repeated in the queue."""
        flagged = position("flagged", 1000, 400, close_in_days=30, top_action=True)

        queue = action_queue(over_target_positions + [flagged], NOW)

        assert "flagged" not in ids(queue)
        assert ids(queue) == ["card-1", "card-2", "card-3"]

    def test_healthy_cards_not_queued(self):
        """Only cards needing payment are listed."""
        positions = [
            position("top", 1000, 900, close_in_days=1),
            position("healthy", 1000, 100, close_in_days=2),
        ]

        assert action_queue(positions, NOW) == []


class TestCardStatus:
    """Test suite for card_status."""

    def test_urgent_when_closing_within_a_day(self):
        """Closing tomorrow and over target is urgent."""
        assert card_status(position("a", 1000, 900, close_in_days=1), NOW) == CardStatus.URGENT

    def test_pay_when_close_is_further(self):
        """Over target with time to spare is PAY."""
        assert card_status(position("a", 1000, 900, close_in_days=5), NOW) == CardStatus.PAY
        assert card_status(position("b", 1000, 900), NOW) == CardStatus.PAY

    def test_ok_when_healthy(self):
        """Within target is OK regardless of the close date."""
        assert card_status(position("a", 1000, 100, close_in_days=1), NOW) == CardStatus.OK


class TestPositionsFromPlan:
    """Test suite for positions_from_plan."""

    def test_joins_plan_onto_cards(self):
        """Each card gets its slice amount and effective target."""
        card_a = CardProfile(id="a", limit=Decimal("1000"), posted_balance=Decimal("500"))
        card_b = CardProfile(
            id="b",
            limit=Decimal("1000"),
            posted_balance=Decimal("50"),
            target_utilization=Decimal("0.10"),
        )
        plan = PaymentPlan(
            slices=(
                PaymentSlice(
                    card_id="a",
                    card_name="a",
                    amount=Decimal("100"),
                    safe_by=NOW,
                    rationale="Limit $1,000.00 • Target 30% • Gap $200.00",
                ),
            ),
            as_of=NOW,
        )

        positions = positions_from_plan(
            [card_a, card_b], plan, UserMoneyConfig(jurisdiction="ON")
        )

        assert [p.recommended_payment for p in positions] == [Decimal("100"), Decimal("0")]
        assert [p.target_utilization for p in positions] == [Decimal("0.30"), Decimal("0.10")]
        assert needs_payment(positions[0])
        assert not needs_payment(positions[1])
