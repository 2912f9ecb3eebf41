"""
Pure domain layer.

This module contains pure data transfer objects and domain rules with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from placement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from placement_kernel.domain.dtos import (
    ApplicationDraft,
    ApplicationInfo,
    ChangeProposalInfo,
    ContractDraft,
    ContractInfo,
    OfferInfo,
    TargetedOfferResponse,
)
from placement_kernel.domain.identity import Caller, Role
from placement_kernel.domain.lifecycles import (
    ApplicationStatus,
    ContractStatus,
    OfferStatus,
    ProposalStatus,
)
from placement_kernel.domain.offers import (
    NonTargetedCompanyOfferSpec,
    OfferBody,
    OfferKind,
    OfferSpec,
    StudentOfferSpec,
    TargetedCompanyOfferSpec,
)
from placement_kernel.domain.terms import (
    DEFAULT_LIMITS,
    ContractTerms,
    ProposalDelta,
    WorkloadLimits,
)

__all__ = [
    "ApplicationDraft",
    "ApplicationInfo",
    "ApplicationStatus",
    "Caller",
    "ChangeProposalInfo",
    "Clock",
    "ContractDraft",
    "ContractInfo",
    "ContractStatus",
    "ContractTerms",
    "DEFAULT_LIMITS",
    "DeterministicClock",
    "NonTargetedCompanyOfferSpec",
    "OfferBody",
    "OfferInfo",
    "OfferKind",
    "OfferSpec",
    "OfferStatus",
    "ProposalDelta",
    "ProposalStatus",
    "Role",
    "StudentOfferSpec",
    "SystemClock",
    "TargetedCompanyOfferSpec",
    "TargetedOfferResponse",
    "WorkloadLimits",
]
