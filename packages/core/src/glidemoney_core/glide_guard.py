"""Glide Guard: weekly credit card payment planning.

Given this period's income, the cards, upcoming bills and the user's
cushion, Glide Guard decides how much to pay toward which card, and by
when, so each card closes its statement at or below its target
utilization.

The plan is built in this order:
1. Hold back the period set-aside (tax, CPP, HST)
2. Fund upcoming bills and keep the cushion intact
3. Split what is left across cards in proportion to how far each one
   sits above target, never paying a card more than its gap

Amounts are rounded down to cents so the plan can never spend more than
the available budget. The few cents lost to rounding are reported on the
plan as ``rounding_drift``.
"""

import calendar
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Optional

import structlog

from glidemoney_core.config import GlideGuardSettings
from glidemoney_core.exceptions import InvalidCardProfile, InvalidInput
from glidemoney_core.formatting import format_cad
from glidemoney_core.models import (
    ZERO,
    Cadence,
    CardPosition,
    CardProfile,
    GapEntry,
    PaymentPlan,
    PaymentSlice,
    SnoozePlan,
    UpcomingBill,
    UserMoneyConfig,
    ensure_utc,
    quantize_cents,
    require_non_negative,
    to_decimal,
)
from glidemoney_core.priority import action_queue, sort_cards, target_percent
from glidemoney_core.rate_tables import RateTableProvider, TaxRateTable
from glidemoney_core.tax_engine import compute_period_set_aside

logger = structlog.get_logger()


# =============================================================================
# DATES
# =============================================================================

def add_business_days(start: datetime, days: int, skip_weekends: bool = True) -> datetime:
    """Move forward ``days`` business days (Saturday and Sunday don't count)."""
    if not skip_weekends:
        return start + timedelta(days=days)
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def subtract_business_days(start: datetime, days: int, skip_weekends: bool = True) -> datetime:
    """Move back ``days`` business days."""
    if not skip_weekends:
        return start - timedelta(days=days)
    current = start
    removed = 0
    while removed < days:
        current -= timedelta(days=1)
        if current.weekday() < 5:
            removed += 1
    return current


def _add_month(value: datetime) -> datetime:
    year = value.year + value.month // 12
    month = value.month % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_money_day(as_of: datetime, cadence: Cadence) -> datetime:
    """Next cadence checkpoint after ``as_of``.

    Monthly cadence lands on the same day next month, or the last day of a
    shorter month.
    """
    as_of = ensure_utc(as_of)
    if cadence == Cadence.WEEKLY:
        return as_of + timedelta(days=7)
    if cadence == Cadence.BI_WEEKLY:
        return as_of + timedelta(days=14)
    return _add_month(as_of)


def compute_safe_by(
    card: CardProfile,
    as_of: datetime,
    settings: GlideGuardSettings,
) -> datetime:
    """Latest moment a payment can start and still post before close.

    With a known close date this is the close minus the card's posting
    delay, never earlier than ``as_of``. Without one, the flat posting
    buffer is added to ``as_of``.
    """
    as_of = ensure_utc(as_of)
    if card.next_close_at is None:
        return add_business_days(as_of, settings.posting_buffer_days, settings.skip_weekends)

    delay = card.posting_delay_days
    if delay is None:
        delay = settings.posting_buffer_days
    safe_by = subtract_business_days(card.next_close_at, delay, settings.skip_weekends)
    return max(as_of, safe_by)


def compute_smart_snooze(next_cadence_at: datetime, safe_by: datetime) -> SnoozePlan:
    """Pick a reminder time when the user snoozes a payment.

    If the safe-by comes before the next money day, remind the day before
    safe-by so the payment still posts; otherwise snap to the money day.
    """
    next_cadence_at = ensure_utc(next_cadence_at)
    safe_by = ensure_utc(safe_by)
    if safe_by < next_cadence_at:
        return SnoozePlan(
            remind_at=safe_by - timedelta(days=1),
            note="Reminder before safe-by so it posts in time.",
        )
    return SnoozePlan(remind_at=next_cadence_at, note="Next money day.")


# =============================================================================
# BUDGET AND GAPS
# =============================================================================

def compute_available_budget(
    period_income: Decimal,
    set_aside: Decimal,
    bills_total: Decimal,
    cushion: Decimal,
) -> Decimal:
    """Money left for card payments, rounded down to cents and never negative."""
    remaining = period_income - set_aside - bills_total - cushion
    return max(ZERO, quantize_cents(remaining, ROUND_DOWN))


def _validate_cards(cards: Sequence[CardProfile]) -> None:
    seen = set()
    for card in cards:
        if card.id in seen:
            raise InvalidCardProfile(
                f"Card {card.id} appears more than once",
                card_id=card.id,
                field="id",
                constraint="unique card ids",
            )
        seen.add(card.id)


def compute_gaps(cards: Iterable[CardProfile], default_target: Decimal) -> list[GapEntry]:
    """Gap above target for each card; cards already within target are dropped."""
    gaps = []
    for card in cards:
        target = card.target_utilization or default_target
        gap = quantize_cents(max(ZERO, card.posted_balance - target * card.limit))
        if gap > ZERO:
            gaps.append(GapEntry(card=card, target_utilization=target, gap=gap))
    return gaps


def allocate_by_gap(
    gaps: Sequence[GapEntry],
    available_budget: Decimal,
) -> tuple[list[tuple[GapEntry, Decimal]], Decimal]:
    """Split the budget across cards in proportion to their gaps.

    Each card gets ``min(gap, share)`` rounded down to cents; cards whose
    share rounds to zero get nothing.

    Returns:
        Tuple of (entry/amount pairs, rounding drift)
    """
    total_gap = sum((g.gap for g in gaps), ZERO)
    if total_gap <= ZERO or available_budget <= ZERO:
        return [], ZERO

    allocations = []
    drift = ZERO
    for entry in gaps:
        share = min(entry.gap, entry.gap / total_gap * available_budget)
        amount = quantize_cents(share, ROUND_DOWN)
        drift += share - amount
        if amount > ZERO:
            allocations.append((entry, amount))
    return allocations, quantize_cents(drift)


def build_rationale(entry: GapEntry) -> str:
    """One-line explanation shown next to a payment."""
    position = CardPosition(card=entry.card, target_utilization=entry.target_utilization)
    return (
        f"Limit {format_cad(entry.card.limit)} • "
        f"Target {target_percent(position)}% • "
        f"Gap {format_cad(entry.gap)}"
    )


# =============================================================================
# PLANNER
# =============================================================================

def compute_plan(
    cards: Sequence[CardProfile],
    config: UserMoneyConfig,
    upcoming_bills: Iterable[UpcomingBill],
    period_income,
    rate_table: TaxRateTable,
    *,
    as_of: Optional[datetime] = None,
    settings: Optional[GlideGuardSettings] = None,
) -> PaymentPlan:
    """
    Compute this period's card payment plan.

    Args:
        cards: Card profiles to plan for
        config: The user's target, cushion, cadence and tax settings
        upcoming_bills: Bills due this period, deducted in full
        period_income: Income received this period
        rate_table: Supplies CPP and sales tax rates for the set-aside
        as_of: Planning time; defaults to now (UTC)
        settings: Posting buffer settings; defaults to the environment

    Returns:
        PaymentPlan whose slices never add up to more than its budget

    Raises:
        InvalidCardProfile: On duplicate card ids
        InvalidInput: On negative income, or a rate table for another province
    """
    settings = settings or GlideGuardSettings()
    as_of = ensure_utc(as_of or datetime.now(timezone.utc))
    cards = list(cards)
    _validate_cards(cards)

    if rate_table.jurisdiction != config.jurisdiction:
        raise InvalidInput(
            f"Rate table is for {rate_table.jurisdiction}, user is in {config.jurisdiction}",
            field="rate_table",
            value=rate_table.jurisdiction,
            constraint="rate table jurisdiction matches the user's",
        )

    period_income = require_non_negative(to_decimal(period_income, "period_income"), "period_income")
    bills = list(upcoming_bills)
    bills_total = sum((b.amount for b in bills), ZERO)

    # Step 1: set-aside
    set_aside = compute_period_set_aside(
        period_income,
        config.effective_tax_rate,
        rate_table,
        hst_registered=config.hst_registered,
        periods_per_year=config.cadence.periods_per_year,
    )

    # Step 2: available budget
    available_budget = compute_available_budget(
        period_income, set_aside.total, bills_total, config.cushion
    )

    plan_fields = dict(
        as_of=as_of,
        available_budget=available_budget,
        set_aside=set_aside.total,
        upcoming_bills_total=bills_total,
        cushion=config.cushion,
    )

    if available_budget <= ZERO:
        logger.info(
            "glide_guard_no_budget",
            period_income=str(period_income),
            set_aside=str(set_aside.total),
            bills=str(bills_total),
            cushion=str(config.cushion),
        )
        return PaymentPlan(**plan_fields)

    # Step 3: gaps, most urgent card first
    gaps = compute_gaps(cards, config.target_utilization)
    if not gaps:
        logger.info("glide_guard_within_target", card_count=len(cards))
        return PaymentPlan(**plan_fields)

    by_id = {g.card.id: g for g in gaps}
    ranked = sort_cards(
        (
            CardPosition(card=g.card, target_utilization=g.target_utilization, recommended_payment=g.gap)
            for g in gaps
        ),
        as_of,
    )
    gaps = [by_id[p.card.id] for p in ranked]

    # Step 4: proportional fill
    allocations, drift = allocate_by_gap(gaps, available_budget)
    slices = tuple(
        PaymentSlice(
            card_id=entry.card.id,
            card_name=entry.card.display_name,
            amount=amount,
            safe_by=compute_safe_by(entry.card, as_of, settings),
            rationale=build_rationale(entry),
        )
        for entry, amount in allocations
    )

    plan = PaymentPlan(slices=slices, rounding_drift=drift, **plan_fields)
    logger.info(
        "glide_guard_plan_computed",
        available_budget=str(available_budget),
        total_payments=str(plan.total_payments),
        slice_count=len(slices),
        cards_over_target=len(gaps),
        rounding_drift=str(drift),
    )
    return plan


class GlideGuardPlanner:
    """
    Plans card payments against a rate table provider.

    Looks up the user's province for the tax year of ``as_of`` on every
    call, so a planner can be shared across users and years.
    """

    def __init__(
        self,
        rate_tables: RateTableProvider,
        settings: Optional[GlideGuardSettings] = None,
    ):
        self.rate_tables = rate_tables
        self.settings = settings or GlideGuardSettings()

    def plan(
        self,
        cards: Sequence[CardProfile],
        config: UserMoneyConfig,
        upcoming_bills: Iterable[UpcomingBill],
        period_income,
        as_of: Optional[datetime] = None,
    ) -> PaymentPlan:
        """Compute the plan using the rate table for the user's province."""
        as_of = ensure_utc(as_of or datetime.now(timezone.utc))
        table = self.rate_tables.get_table(config.jurisdiction, as_of.year)
        return compute_plan(
            cards,
            config,
            upcoming_bills,
            period_income,
            table,
            as_of=as_of,
            settings=self.settings,
        )

    def action_queue(self, positions: Sequence[CardPosition], now: datetime) -> list[CardPosition]:
        """Cards to act on after the top action, capped by ``action_queue_size``."""
        return action_queue(positions, now, size=self.settings.action_queue_size)
