"""
placement_services.orchestrator -- transactional entry point for adapters.

Responsibility:
    One method per kernel operation.  Each call opens exactly one
    transaction with ``session_scope()``, wires the kernel services for
    that session, applies the role checks the kernel leaves to its caller
    (offer posting, applying), and returns frozen DTOs.  A failure anywhere
    rolls back everything the call wrote.

Architecture position:
    Services -- the only place kernel services are constructed and
    composed.  HTTP adapters call this class with a ``Caller`` minted by
    ``AuthenticationBoundary``.

Usage:
    orchestrator = PlacementOrchestrator.from_config(get_active_config())
    caller = boundary.authenticate(request.headers["x-user-name"])
    orchestrator.terminate_contract(caller, contract_id)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from placement_config.schema import PlacementConfig
from placement_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from placement_kernel.domain.clock import Clock, SystemClock
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
from placement_kernel.domain.offers import OfferKind, OfferSpec, required_role
from placement_kernel.domain.terms import DEFAULT_LIMITS, ProposalDelta, WorkloadLimits
from placement_kernel.exceptions import AccessDeniedError
from placement_kernel.logging_config import LogContext, get_logger
from placement_kernel.selectors.contract_selector import ContractSelector
from placement_kernel.selectors.offer_selector import OfferSelector
from placement_kernel.services.change_proposal_service import ChangeProposalService
from placement_kernel.services.contract_service import ContractService
from placement_kernel.services.offer_service import OfferService

logger = get_logger("services.orchestrator")

T = TypeVar("T")


@dataclass(frozen=True)
class MatchOutcome:
    """Result of a call that may turn an offer into a contract."""

    contract: ContractInfo | None
    application: ApplicationInfo | None = None
    targeted: TargetedOfferResponse | None = None


@dataclass
class _Services:
    contracts: ContractService
    proposals: ChangeProposalService
    offers: OfferService
    contract_selector: ContractSelector
    offer_selector: OfferSelector


class PlacementOrchestrator:
    """Runs every kernel operation in its own transaction."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        limits: WorkloadLimits = DEFAULT_LIMITS,
    ):
        self._factory = session_factory
        self._clock = clock or SystemClock()
        self._limits = limits

    @classmethod
    def from_config(
        cls,
        config: PlacementConfig,
        clock: Clock | None = None,
    ) -> PlacementOrchestrator:
        """Initialize the engine from ``config.database`` and build an orchestrator."""
        db = config.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
        )
        return cls(get_session_factory(), clock=clock, limits=config.workload)

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _wire(self, session: Session) -> _Services:
        contracts = ContractService(session, self._clock, self._limits)
        return _Services(
            contracts=contracts,
            proposals=ChangeProposalService(session, contracts),
            offers=OfferService(session, self._limits),
            contract_selector=ContractSelector(session),
            offer_selector=OfferSelector(session),
        )

    def _run(self, caller: Caller | None, operation: str, work: Callable[[_Services], T]) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=caller.identity if caller else None,
            actor_role=caller.role.value if caller else None,
        ):
            logger.debug("operation_started", extra={"operation": operation})
            with session_scope(self._factory) as session:
                return work(self._wire(session))

    # =========================================================================
    # Contracts
    # =========================================================================

    def create_contract(self, caller: Caller, draft: ContractDraft) -> ContractInfo:
        """Create a contract directly.  Caller must be one of its parties."""
        if not caller.is_party_to(draft.company_id, draft.student_id):
            raise AccessDeniedError(caller.identity)
        return self._run(caller, "create_contract", lambda s: s.contracts.validate_and_create(draft))

    def get_contract(
        self,
        caller: Caller,
        company_id: str,
        student_id: str,
        active: bool = True,
    ) -> ContractInfo:
        return self._run(
            caller,
            "get_contract",
            lambda s: s.contracts.get_contract_between(company_id, student_id, active, caller),
        )

    def get_contract_by_id(self, caller: Caller, contract_id: UUID) -> ContractInfo:
        def work(s: _Services) -> ContractInfo:
            info = s.contracts.get_by_id(contract_id)
            if not caller.is_party_to(info.company_id, info.student_id):
                raise AccessDeniedError(caller.identity)
            return info

        return self._run(caller, "get_contract_by_id", work)

    def list_contracts(self, caller: Caller) -> list[ContractInfo]:
        return self._run(
            caller,
            "list_contracts",
            lambda s: s.contracts.list_for_party(caller.identity, caller),
        )

    def terminate_contract(self, caller: Caller, contract_id: UUID) -> ContractInfo:
        return self._run(caller, "terminate_contract", lambda s: s.contracts.terminate(contract_id, caller))

    def expire_contracts(self, as_of: date | None = None) -> list[ContractInfo]:
        """Operator sweep; not tied to a caller."""
        return self._run(None, "expire_contracts", lambda s: s.contracts.expire_due(as_of))

    # =========================================================================
    # Change proposals
    # =========================================================================

    def submit_proposal(
        self,
        caller: Caller,
        contract_id: UUID,
        delta: ProposalDelta,
    ) -> ChangeProposalInfo:
        return self._run(
            caller,
            "submit_proposal",
            lambda s: s.proposals.submit_proposal(contract_id, caller, delta),
        )

    def accept_proposal(self, caller: Caller, proposal_id: UUID) -> ContractInfo:
        return self._run(
            caller,
            "accept_proposal",
            lambda s: s.proposals.accept_proposal(proposal_id, caller),
        )

    def reject_proposal(self, caller: Caller, proposal_id: UUID) -> ChangeProposalInfo:
        return self._run(
            caller,
            "reject_proposal",
            lambda s: s.proposals.reject_proposal(proposal_id, caller),
        )

    def delete_proposal(self, caller: Caller, proposal_id: UUID) -> None:
        self._run(
            caller,
            "delete_proposal",
            lambda s: s.proposals.delete_proposal(proposal_id, caller),
        )

    def get_proposals(self, caller: Caller, contract_id: UUID) -> list[ChangeProposalInfo]:
        return self._run(
            caller,
            "get_proposals",
            lambda s: s.proposals.get_proposals(contract_id, caller),
        )

    # =========================================================================
    # Offers and applications
    # =========================================================================

    def post_offer(self, caller: Caller, spec: OfferSpec) -> OfferInfo:
        """
        Save an offer on behalf of its author.

        The caller must be the declared author and hold the role of the
        offer kind (STUDENT for student offers, COMPANY otherwise).
        """
        if spec.body.author_id != caller.identity:
            raise AccessDeniedError(caller.identity, "User is not the author of this offer")
        if caller.role != required_role(spec):
            raise AccessDeniedError(
                caller.identity,
                f"Only {required_role(spec).value} users can post this offer",
            )
        return self._run(caller, "post_offer", lambda s: s.offers.save_offer(spec))

    def get_offer(self, caller: Caller, offer_id: UUID) -> OfferInfo:
        return self._run(caller, "get_offer", lambda s: s.offers.get_offer(offer_id))

    def list_offers(self, caller: Caller, kind: OfferKind) -> list[OfferInfo]:
        return self._run(caller, "list_offers", lambda s: s.offer_selector.list_by_kind(kind))

    def list_my_offers(self, caller: Caller) -> list[OfferInfo]:
        return self._run(
            caller,
            "list_my_offers",
            lambda s: s.offer_selector.list_by_author(caller.identity),
        )

    def list_targeted_offers(self, caller: Caller) -> list[OfferInfo]:
        return self._run(
            caller,
            "list_targeted_offers",
            lambda s: s.offer_selector.list_targeted_at(caller.identity),
        )

    def withdraw_offer(self, caller: Caller, offer_id: UUID) -> OfferInfo:
        return self._run(caller, "withdraw_offer", lambda s: s.offers.withdraw_offer(offer_id, caller))

    def apply(self, caller: Caller, offer_id: UUID, price_per_hour: Decimal) -> ApplicationInfo:
        """File an application as the calling student."""
        if caller.role != Role.STUDENT:
            raise AccessDeniedError(caller.identity, "Only students can apply to offers")
        draft = ApplicationDraft(student_id=caller.identity, price_per_hour=price_per_hour)
        return self._run(caller, "apply", lambda s: s.offers.apply(draft, offer_id))

    def list_applications(self, caller: Caller, offer_id: UUID) -> list[ApplicationInfo]:
        return self._run(
            caller,
            "list_applications",
            lambda s: s.offers.list_applications(offer_id, caller),
        )

    def list_my_applications(self, caller: Caller) -> list[ApplicationInfo]:
        """Every application the calling student filed, newest first."""
        return self._run(
            caller,
            "list_my_applications",
            lambda s: s.offer_selector.applications_by_student(caller.identity),
        )

    def accept_application(self, caller: Caller, application_id: UUID) -> MatchOutcome:
        """
        Accept an application and create the resulting contract.

        Cascade and contract creation share one transaction: if the pair
        already has an ACTIVE contract, the acceptance is rolled back too.
        """

        def work(s: _Services) -> MatchOutcome:
            application = s.offers.accept_for(caller, application_id)
            contract = s.contracts.validate_and_create(
                s.offers.contract_draft_for(application_id)
            )
            return MatchOutcome(contract=contract, application=application)

        return self._run(caller, "accept_application", work)

    def respond_to_targeted(self, caller: Caller, offer_id: UUID, accept: bool) -> MatchOutcome:
        """The target accepts (contract created) or declines a targeted offer."""

        def work(s: _Services) -> MatchOutcome:
            response = s.offers.respond_to_targeted(offer_id, caller, accept)
            contract = None
            if response.contract_draft is not None:
                contract = s.contracts.validate_and_create(response.contract_draft)
            return MatchOutcome(contract=contract, targeted=response)

        return self._run(caller, "respond_to_targeted", work)
