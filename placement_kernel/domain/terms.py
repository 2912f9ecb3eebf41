"""
Contract terms -- workload ceilings, end-date arithmetic, amendments.

Responsibility:
    Pure rules shared by contracts, offers and change proposals:

    * the workload ceiling (hours per week, duration in weeks),
    * the floor end date ``start + ceil(total_hours / hours_per_week)`` weeks,
    * the coherence check applied when a change proposal is filed,
    * the compute-then-validate amendment applied when one is accepted.

Architecture position:
    Kernel > Domain -- pure functional core.  No ORM, no clock, no I/O.
    Functions report violations as values; services turn them into typed
    exceptions.

Invariants enforced:
    - hours_per_week <= limits.max_hours_per_week
    - total_hours / hours_per_week <= limits.max_weeks
    - partial weeks round up (ceiling division)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal


@dataclass(frozen=True)
class WorkloadLimits:
    """Ceilings that bound every contract and every offer."""

    max_hours_per_week: float = 20.0
    max_weeks: float = 26.0


DEFAULT_LIMITS = WorkloadLimits()


@dataclass(frozen=True)
class ContractTerms:
    """The mutable terms of a contract, detached from persistence."""

    hours_per_week: float
    total_hours: float
    price_per_hour: Decimal
    start_date: date
    end_date: date


@dataclass(frozen=True)
class ProposalDelta:
    """Requested amendment.  ``None`` means "unchanged"."""

    hours_per_week: float | None = None
    total_hours: float | None = None
    price_per_hour: Decimal | None = None
    end_date: date | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.hours_per_week is None
            and self.total_hours is None
            and self.price_per_hour is None
            and self.end_date is None
        )


@dataclass(frozen=True)
class AmendmentOutcome:
    """Result of applying a delta to terms.

    Exactly one of ``terms`` and ``reason`` is set.  ``reason`` is one of
    ``"end_date_too_soon"`` or ``"no_longer_valid"``.
    """

    terms: ContractTerms | None = None
    reason: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.terms is not None


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def weeks_for(total_hours: float, hours_per_week: float) -> int:
    """Whole weeks needed to work ``total_hours``; partial weeks round up."""
    return math.ceil(total_hours / hours_per_week)


def floor_end_date(start: date, total_hours: float, hours_per_week: float) -> date:
    """Earliest legal end date for the given workload."""
    return start + timedelta(weeks=weeks_for(total_hours, hours_per_week))


def weeks_between(start: date, end: date) -> int:
    """Weeks spanned from ``start`` to ``end``; a started week counts."""
    return math.ceil((end - start).days / 7)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def workload_violations(
    hours_per_week: float,
    total_hours: float,
    limits: WorkloadLimits = DEFAULT_LIMITS,
) -> tuple[str, ...]:
    """
    Check a workload against the ceilings.

    Returns:
        Tuple of violation codes, empty when the workload is legal.  Codes:
        ``hours_per_week_not_positive``, ``total_hours_not_positive``,
        ``hours_per_week_exceeded``, ``duration_exceeded``.
    """
    violations: list[str] = []
    if hours_per_week <= 0:
        violations.append("hours_per_week_not_positive")
    if total_hours <= 0:
        violations.append("total_hours_not_positive")
    if hours_per_week > limits.max_hours_per_week:
        violations.append("hours_per_week_exceeded")
    if hours_per_week > 0 and total_hours / hours_per_week > limits.max_weeks:
        violations.append("duration_exceeded")
    return tuple(violations)


def delta_violation(
    current: ContractTerms,
    delta: ProposalDelta,
    limits: WorkloadLimits = DEFAULT_LIMITS,
) -> str | None:
    """
    Coherence check for a proposal at submission time.

    Only values the proposer supplied directly are checked against the
    ceilings; whether the combined result still fits is decided at accept
    time, against the contract as it stands then.

    Returns:
        A human-readable message when the delta is incoherent, else None.
    """
    if delta.is_empty:
        return "The proposal does not change anything."

    changes = (
        (delta.hours_per_week is not None and delta.hours_per_week != current.hours_per_week)
        or (delta.total_hours is not None and delta.total_hours != current.total_hours)
        or (delta.price_per_hour is not None and delta.price_per_hour != current.price_per_hour)
        or (delta.end_date is not None and delta.end_date != current.end_date)
    )
    if not changes:
        return "The proposal does not change anything."

    if delta.hours_per_week is not None:
        if delta.hours_per_week <= 0:
            return "Hours per week must be positive."
        if delta.hours_per_week > limits.max_hours_per_week:
            return (
                f"Hours per week exceed the maximum of "
                f"{limits.max_hours_per_week:g}."
            )
    if delta.total_hours is not None and delta.total_hours <= 0:
        return "Total hours must be positive."
    if delta.price_per_hour is not None and delta.price_per_hour < 0:
        return "Price per hour may not be negative."

    if delta.hours_per_week is not None or delta.total_hours is not None:
        hours_per_week = (
            delta.hours_per_week
            if delta.hours_per_week is not None
            else current.hours_per_week
        )
        total_hours = (
            delta.total_hours if delta.total_hours is not None else current.total_hours
        )
        if total_hours / hours_per_week > limits.max_weeks:
            return (
                f"The contract would exceed the maximum duration of "
                f"{limits.max_weeks:g} weeks."
            )

    if delta.end_date is not None:
        if delta.end_date < current.start_date:
            return "The end date may not precede the start date."
        if weeks_between(current.start_date, delta.end_date) > limits.max_weeks:
            return (
                f"The contract would exceed the maximum duration of "
                f"{limits.max_weeks:g} weeks."
            )

    return None


def amend(
    current: ContractTerms,
    delta: ProposalDelta,
    limits: WorkloadLimits = DEFAULT_LIMITS,
) -> AmendmentOutcome:
    """
    Apply ``delta`` to ``current`` and validate the combined result.

    Steps:
        1. Take each supplied hours/total/price value.
        2. Compute the floor end date from the new workload.
        3. An explicit end date must not precede the floor; without one the
           floor stands.
        4. Re-check hours per week and the weeks actually spanned.

    ``current`` is never modified; callers write ``outcome.terms`` back only
    when ``outcome.ok``.
    """
    hours_per_week = (
        delta.hours_per_week if delta.hours_per_week is not None else current.hours_per_week
    )
    total_hours = delta.total_hours if delta.total_hours is not None else current.total_hours
    price_per_hour = (
        delta.price_per_hour if delta.price_per_hour is not None else current.price_per_hour
    )

    floor = floor_end_date(current.start_date, total_hours, hours_per_week)
    if delta.end_date is not None:
        if delta.end_date < floor:
            return AmendmentOutcome(
                reason="end_date_too_soon",
                message=(
                    "The proposed end date is too soon for the amount of hours "
                    f"in the contract (earliest possible: {floor.isoformat()})."
                ),
            )
        end_date = delta.end_date
    else:
        end_date = floor

    weeks = weeks_between(current.start_date, end_date)
    if hours_per_week > limits.max_hours_per_week or weeks > limits.max_weeks:
        return AmendmentOutcome(
            reason="no_longer_valid",
            message="The proposal is no longer valid due to other modifications.",
        )

    return AmendmentOutcome(
        terms=replace(
            current,
            hours_per_week=hours_per_week,
            total_hours=total_hours,
            price_per_hour=price_per_hour,
            end_date=end_date,
        )
    )
