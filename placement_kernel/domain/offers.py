"""
Offer variants -- a closed tagged union.

Responsibility:
    Describes the three kinds of offer the marketplace knows about and the
    rules they share.  Every variant carries the same ``OfferBody`` (title,
    description, workload, expertise) plus its own fields:

    ============================  ==============  ===============================
    Variant                       Posted by       Variant fields
    ============================  ==============  ===============================
    StudentOfferSpec              STUDENT         price_per_hour
    TargetedCompanyOfferSpec      COMPANY         requirements, target_id, price
    NonTargetedCompanyOfferSpec   COMPANY         requirements
    ============================  ==============  ===============================

    The set is closed: code that needs per-kind behaviour matches on the
    variant instead of relying on subclass overrides.

Architecture position:
    Kernel > Domain -- pure.  The ORM stores all three in one table with an
    ``OfferKind`` discriminator column.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union

from placement_kernel.domain.identity import Role
from placement_kernel.domain.terms import DEFAULT_LIMITS, WorkloadLimits


class OfferKind(str, Enum):
    """Discriminator for the offer union."""

    STUDENT = "STUDENT"
    TARGETED_COMPANY = "TARGETED_COMPANY"
    NON_TARGETED_COMPANY = "NON_TARGETED_COMPANY"


REQUIRED_ROLE: dict[OfferKind, Role] = {
    OfferKind.STUDENT: Role.STUDENT,
    OfferKind.TARGETED_COMPANY: Role.COMPANY,
    OfferKind.NON_TARGETED_COMPANY: Role.COMPANY,
}

# Expertise and requirements are stored joined on this character
LIST_SEPARATOR = ";"


@dataclass(frozen=True)
class OfferBody:
    """Fields every offer variant carries."""

    author_id: str
    title: str
    description: str
    hours_per_week: float
    total_hours: float
    expertise: tuple[str, ...] = ()


@dataclass(frozen=True)
class StudentOfferSpec:
    body: OfferBody
    price_per_hour: Decimal
    kind: ClassVar[OfferKind] = OfferKind.STUDENT


@dataclass(frozen=True)
class TargetedCompanyOfferSpec:
    body: OfferBody
    target_id: str
    price_per_hour: Decimal
    requirements: tuple[str, ...] = field(default=())
    kind: ClassVar[OfferKind] = OfferKind.TARGETED_COMPANY


@dataclass(frozen=True)
class NonTargetedCompanyOfferSpec:
    body: OfferBody
    requirements: tuple[str, ...] = field(default=())
    kind: ClassVar[OfferKind] = OfferKind.NON_TARGETED_COMPANY


OfferSpec = Union[StudentOfferSpec, TargetedCompanyOfferSpec, NonTargetedCompanyOfferSpec]


def required_role(spec: OfferSpec) -> Role:
    """The role an author must hold to post ``spec``."""
    return REQUIRED_ROLE[spec.kind]


def offer_violation(
    spec: OfferSpec,
    limits: WorkloadLimits = DEFAULT_LIMITS,
) -> str | None:
    """
    Validate an offer before it is stored.

    Offers are contract drafts, so they obey the same workload ceiling.

    Returns:
        Human-readable message for the first violation found, else None.
    """
    body = spec.body
    if not body.author_id or not body.author_id.strip():
        return "Offer must have an author"
    if body.hours_per_week <= 0:
        return "Offer must have a positive number of hours per week"
    if body.total_hours <= 0:
        return "Offer must have a positive number of total hours"
    if body.hours_per_week > limits.max_hours_per_week:
        return f"Offer exceeds {limits.max_hours_per_week:g} hours per week"
    if body.total_hours / body.hours_per_week > limits.max_weeks:
        return "Offer exceeds 6 month duration"

    listed = (*body.expertise, *getattr(spec, "requirements", ()))
    if any(LIST_SEPARATOR in item for item in listed):
        return f"Expertise and requirements may not contain '{LIST_SEPARATOR}'"

    match spec:
        case StudentOfferSpec(price_per_hour=price) | TargetedCompanyOfferSpec(
            price_per_hour=price
        ) if price < 0:
            return "Price per hour may not be negative"
        case TargetedCompanyOfferSpec(target_id=target) if not target or not target.strip():
            return "Targeted offer must name its target"
        case TargetedCompanyOfferSpec(target_id=target) if target == body.author_id:
            return "Targeted offer may not target its own author"
    return None
