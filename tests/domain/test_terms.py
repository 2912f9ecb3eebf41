"""
Tests for contract term arithmetic, proposal coherence and amendment.

All pure domain tests -- no database, no I/O.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from placement_kernel.domain.terms import (
    DEFAULT_LIMITS,
    ContractTerms,
    ProposalDelta,
    WorkloadLimits,
    amend,
    delta_violation,
    floor_end_date,
    weeks_between,
    weeks_for,
    workload_violations,
)

START = date(2024, 1, 1)


def _terms(hours_per_week=20.0, total_hours=520.0, price="15.00", end=None) -> ContractTerms:
    return ContractTerms(
        hours_per_week=hours_per_week,
        total_hours=total_hours,
        price_per_hour=Decimal(price),
        start_date=START,
        end_date=end or floor_end_date(START, total_hours, hours_per_week),
    )


class TestArithmetic:
    def test_full_term_contract_runs_26_weeks(self):
        assert weeks_for(520, 20) == 26
        assert floor_end_date(START, 520, 20) == START + timedelta(weeks=26)
        assert floor_end_date(START, 520, 20) == date(2024, 7, 1)

    def test_partial_week_rounds_up(self):
        assert weeks_for(100, 30) == 4
        assert weeks_for(101, 20) == 6

    def test_exact_multiple_does_not_round(self):
        assert weeks_for(100, 20) == 5

    def test_weeks_between_counts_started_week(self):
        assert weeks_between(START, START + timedelta(days=7)) == 1
        assert weeks_between(START, START + timedelta(days=8)) == 2
        assert weeks_between(START, START) == 0


class TestWorkloadViolations:
    def test_legal_workload(self):
        assert workload_violations(20, 520) == ()

    def test_too_many_hours_per_week(self):
        assert "hours_per_week_exceeded" in workload_violations(21, 100)

    def test_duration_just_over_ceiling(self):
        assert workload_violations(20, 521) == ("duration_exceeded",)

    def test_non_positive_values(self):
        violations = workload_violations(0, 0)
        assert "hours_per_week_not_positive" in violations
        assert "total_hours_not_positive" in violations

    def test_custom_limits(self):
        limits = WorkloadLimits(max_hours_per_week=10, max_weeks=4)
        assert workload_violations(10, 40, limits) == ()
        assert workload_violations(10, 41, limits) == ("duration_exceeded",)


class TestDeltaViolation:
    """Coherence check applied when a proposal is filed."""

    def test_empty_delta(self):
        assert delta_violation(_terms(), ProposalDelta()) == "The proposal does not change anything."

    def test_delta_repeating_current_values(self):
        delta = ProposalDelta(hours_per_week=20.0, price_per_hour=Decimal("15.00"))
        assert delta_violation(_terms(), delta) == "The proposal does not change anything."

    def test_price_change_is_coherent(self):
        assert delta_violation(_terms(), ProposalDelta(price_per_hour=Decimal("17.50"))) is None

    def test_hours_over_ceiling(self):
        message = delta_violation(_terms(), ProposalDelta(hours_per_week=21))
        assert message == "Hours per week exceed the maximum of 20."

    def test_non_positive_hours(self):
        message = delta_violation(_terms(), ProposalDelta(hours_per_week=0))
        assert message == "Hours per week must be positive."

    def test_non_positive_total(self):
        message = delta_violation(_terms(), ProposalDelta(total_hours=-5))
        assert message == "Total hours must be positive."

    def test_negative_price(self):
        message = delta_violation(_terms(), ProposalDelta(price_per_hour=Decimal("-1")))
        assert message == "Price per hour may not be negative."

    def test_total_hours_that_break_duration(self):
        message = delta_violation(_terms(), ProposalDelta(total_hours=600))
        assert message == "The contract would exceed the maximum duration of 26 weeks."

    def test_lower_hours_that_break_duration_with_current_total(self):
        # 520 / 10 = 52 weeks
        message = delta_violation(_terms(), ProposalDelta(hours_per_week=10))
        assert message == "The contract would exceed the maximum duration of 26 weeks."

    def test_end_date_before_start(self):
        message = delta_violation(_terms(), ProposalDelta(end_date=START - timedelta(days=1)))
        assert message == "The end date may not precede the start date."

    def test_end_date_beyond_max_weeks(self):
        message = delta_violation(_terms(), ProposalDelta(end_date=START + timedelta(weeks=40)))
        assert message == "The contract would exceed the maximum duration of 26 weeks."

    def test_end_date_one_day_past_max_weeks(self):
        late = START + timedelta(weeks=26, days=1)
        assert delta_violation(_terms(), ProposalDelta(end_date=late)) is not None
        assert delta_violation(_terms(10, 100), ProposalDelta(end_date=late - timedelta(days=1))) is None

    def test_end_date_too_soon_is_left_to_accept_time(self):
        delta = ProposalDelta(end_date=START + timedelta(weeks=2))
        assert delta_violation(_terms(), delta) is None

    def test_uses_configured_limits(self):
        limits = WorkloadLimits(max_hours_per_week=25, max_weeks=26)
        assert delta_violation(_terms(), ProposalDelta(hours_per_week=25), limits) is None


class TestAmend:
    """Compute-then-validate amendment applied at accept time."""

    def test_shorter_total_moves_end_date_to_new_floor(self):
        outcome = amend(_terms(), ProposalDelta(total_hours=200))
        assert outcome.ok
        assert outcome.terms.total_hours == 200
        assert outcome.terms.end_date == START + timedelta(weeks=10)

    def test_price_only_keeps_floor_end_date(self):
        outcome = amend(_terms(), ProposalDelta(price_per_hour=Decimal("20.00")))
        assert outcome.ok
        assert outcome.terms.price_per_hour == Decimal("20.00")
        assert outcome.terms.end_date == date(2024, 7, 1)

    def test_explicit_end_date_after_floor_is_kept(self):
        end = START + timedelta(weeks=12)
        outcome = amend(_terms(), ProposalDelta(total_hours=200, end_date=end))
        assert outcome.ok
        assert outcome.terms.end_date == end

    def test_explicit_end_date_before_floor(self):
        outcome = amend(_terms(), ProposalDelta(end_date=START + timedelta(weeks=10)))
        assert not outcome.ok
        assert outcome.reason == "end_date_too_soon"
        assert "2024-07-01" in outcome.message

    def test_raising_hours_past_ceiling_is_no_longer_valid(self):
        outcome = amend(_terms(), ProposalDelta(hours_per_week=21))
        assert not outcome.ok
        assert outcome.reason == "no_longer_valid"
        assert outcome.terms is None

    def test_end_date_stretching_past_26_weeks(self):
        outcome = amend(_terms(), ProposalDelta(end_date=START + timedelta(weeks=26, days=1)))
        assert outcome.reason == "no_longer_valid"

    def test_end_date_exactly_26_weeks_is_allowed(self):
        outcome = amend(
            _terms(total_hours=100), ProposalDelta(end_date=START + timedelta(weeks=26))
        )
        assert outcome.ok

    def test_current_terms_are_not_modified(self):
        current = _terms()
        amend(current, ProposalDelta(total_hours=200))
        assert current.total_hours == 520.0

    def test_start_date_never_changes(self):
        outcome = amend(_terms(), ProposalDelta(hours_per_week=10, total_hours=100))
        assert outcome.terms.start_date == START

    @pytest.mark.parametrize(
        "delta",
        [
            ProposalDelta(hours_per_week=21),
            ProposalDelta(total_hours=540),
        ],
    )
    def test_default_limits_reject(self, delta):
        assert not amend(_terms(), delta, DEFAULT_LIMITS).ok
