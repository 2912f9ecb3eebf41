"""
OfferService -- offers, applications and the acceptance cascade.

Responsibility:
    Stores offers of every kind, files student applications against open
    non-targeted company offers, and runs the acceptance cascade that turns
    one application into a match.  Also handles the target's answer to a
    targeted offer and withdrawal by the author.

Architecture position:
    Kernel > Services -- imperative shell.  Role authorization for posting
    (author must hold the role of the offer kind) is the orchestrator's
    job; this service is role-agnostic but checks identity relations
    (author, target) where an operation is restricted to one party.

Invariants enforced:
    - Offers obey the same workload ceiling as contracts.
    - One application per (student_id, offer_id): pre-check plus the
      uq_application_student_offer constraint.
    - Acceptance cascade is all-or-nothing: exactly one application
      ACCEPTED, every sibling DECLINED, the offer DISABLED.
    - The offer leaves PENDING through a conditional
      ``UPDATE ... WHERE status = 'PENDING'``; when it touches no row a
      concurrent call won and this one fails, so the caller's transaction
      rolls back.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - InvalidOfferError: workload ceiling, self-targeting, bad price.
    - InvalidApplicationError: missing/closed offer, duplicate application.
    - InvalidAcceptanceError: offer or application no longer PENDING.
    - OfferNotFoundError, ApplicationNotFoundError.
    - AccessDeniedError: caller is not the author (or target).
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_kernel.domain.dtos import (
    ApplicationDraft,
    ApplicationInfo,
    ContractDraft,
    OfferInfo,
    TargetedOfferResponse,
)
from placement_kernel.domain.identity import Caller
from placement_kernel.domain.lifecycles import (
    APPLICATION_WORKFLOW,
    OFFER_WORKFLOW,
    ApplicationStatus,
    OfferStatus,
)
from placement_kernel.domain.offers import (
    NonTargetedCompanyOfferSpec,
    OfferKind,
    OfferSpec,
    StudentOfferSpec,
    TargetedCompanyOfferSpec,
    offer_violation,
)
from placement_kernel.domain.terms import DEFAULT_LIMITS, WorkloadLimits
from placement_kernel.exceptions import (
    AccessDeniedError,
    ApplicationNotFoundError,
    InvalidAcceptanceError,
    InvalidApplicationError,
    InvalidOfferError,
    OfferNotFoundError,
)
from placement_kernel.logging_config import LogContext, get_logger
from placement_kernel.models.offer import Application, Offer
from placement_kernel.selectors.offer_selector import (
    OfferSelector,
    application_to_info,
    offer_to_info,
)
from placement_kernel.services.base import BaseService

logger = get_logger("services.offer")

NO_SUCH_OFFER = "There is no offer associated with this id"
OFFER_NOT_ACTIVE = "This offer is not active anymore"
ALREADY_APPLIED = "Student already applied to this offer"

NO_OFFER_FOR_APPLICATION = "There is no offer associated with this application!"
NOT_ACTIVE_ANYMORE = "The offer or application is not active anymore!"
APPLICATION_NOT_VALID = "Application is not valid!"
CANNOT_ACCEPT = "User can not accept this application!"


class OfferService(BaseService[Offer]):
    """
    Service for offers and applications.

    Contract:
        Returns frozen ``OfferInfo`` / ``ApplicationInfo`` DTOs.  Every
        status change of an offer goes through ``_disable_if_pending``.
    """

    def __init__(self, session: Session, limits: WorkloadLimits = DEFAULT_LIMITS):
        super().__init__(session)
        self._limits = limits
        self._selector = OfferSelector(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _get_offer(self, offer_id: UUID) -> Offer:
        offer = self.session.get(Offer, offer_id)
        if offer is None:
            raise OfferNotFoundError(str(offer_id))
        return offer

    def _get_application(self, application_id: UUID) -> Application:
        application = self.session.get(Application, application_id)
        if application is None:
            raise ApplicationNotFoundError(str(application_id))
        return application

    def _lock_offer(self, offer_id: UUID) -> Offer | None:
        return self.session.execute(
            select(Offer)
            .where(Offer.id == offer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_applications(self, offer_id: UUID) -> list[Application]:
        """Every application of the offer, locked, in a stable lock order."""
        return list(
            self.session.execute(
                select(Application)
                .where(Application.offer_id == offer_id)
                .order_by(Application.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _disable_if_pending(self, offer_id: UUID) -> bool:
        """
        Compare-and-set the offer from PENDING to DISABLED.

        Returns:
            True if this call flipped the status; False if the offer was no
            longer PENDING in the database.
        """
        result = self.session.execute(
            update(Offer)
            .where(
                Offer.id == offer_id,
                Offer.status == OfferStatus.PENDING.value,
            )
            .values(status=OfferStatus.DISABLED.value)
        )
        return result.rowcount == 1

    # =========================================================================
    # Offers
    # =========================================================================

    def save_offer(self, spec: OfferSpec) -> OfferInfo:
        """
        Validate and store an offer with status PENDING.

        Raises:
            InvalidOfferError: e.g. "Offer exceeds 20 hours per week",
                "Offer exceeds 6 month duration".
        """
        message = offer_violation(spec, self._limits)
        if message is not None:
            logger.warning(
                "offer_rejected",
                extra={
                    "kind": spec.kind.value,
                    "author_id": spec.body.author_id,
                    "reason": message,
                },
            )
            raise InvalidOfferError(message)

        body = spec.body
        offer = Offer(
            kind=spec.kind.value,
            author_id=body.author_id,
            title=body.title,
            description=body.description,
            hours_per_week=body.hours_per_week,
            total_hours=body.total_hours,
            expertise=list(body.expertise),
            status=OfferStatus.PENDING.value,
        )
        match spec:
            case StudentOfferSpec(price_per_hour=price):
                offer.price_per_hour = price
            case TargetedCompanyOfferSpec(
                target_id=target, price_per_hour=price, requirements=requirements
            ):
                offer.target_id = target
                offer.price_per_hour = price
                offer.requirements = list(requirements)
            case NonTargetedCompanyOfferSpec(requirements=requirements):
                offer.requirements = list(requirements)

        self.session.add(offer)
        self.session.flush()

        logger.info(
            "offer_saved",
            extra={
                "offer_id": str(offer.id),
                "kind": offer.kind,
                "author_id": offer.author_id,
            },
        )
        return offer_to_info(offer)

    def get_offer(self, offer_id: UUID) -> OfferInfo:
        """
        Raises:
            OfferNotFoundError: If the offer doesn't exist.
        """
        return offer_to_info(self._get_offer(offer_id))

    def withdraw_offer(self, offer_id: UUID, caller: Caller) -> OfferInfo:
        """
        Withdraw an open offer.  Author only.

        Pending applications are DECLINED along with it.

        Raises:
            OfferNotFoundError, AccessDeniedError, InvalidAcceptanceError.
        """
        offer = self._get_offer(offer_id)
        if offer.author_id != caller.identity:
            raise AccessDeniedError(caller.identity)

        offer = self._lock_offer(offer_id)
        if not OFFER_WORKFLOW.allows(offer.status, "withdraw"):
            raise InvalidAcceptanceError(OFFER_NOT_ACTIVE)

        declined = 0
        for application in self._lock_applications(offer.id):
            if APPLICATION_WORKFLOW.allows(application.status, "decline"):
                application.status = ApplicationStatus.DECLINED.value
                declined += 1
        self.session.flush()

        if not self._disable_if_pending(offer.id):
            raise InvalidAcceptanceError(OFFER_NOT_ACTIVE)
        self.session.refresh(offer)

        logger.info(
            "offer_withdrawn",
            extra={
                "offer_id": str(offer.id),
                "declined_applications": declined,
            },
        )
        return offer_to_info(offer)

    def respond_to_targeted(
        self,
        offer_id: UUID,
        caller: Caller,
        accept: bool,
    ) -> TargetedOfferResponse:
        """
        The target's answer to a targeted company offer.

        Either answer consumes the offer.  Accepting returns the contract
        draft built from the offer's terms; the orchestrator turns it into
        a contract in the same transaction.

        Raises:
            OfferNotFoundError: Offer missing or not a targeted offer.
            AccessDeniedError: Caller is not the target.
            InvalidAcceptanceError: Offer is no longer PENDING.
        """
        offer = self._get_offer(offer_id)
        if offer.kind != OfferKind.TARGETED_COMPANY.value:
            raise OfferNotFoundError(str(offer_id))
        if offer.target_id != caller.identity:
            raise AccessDeniedError(caller.identity)

        offer = self._lock_offer(offer_id)
        action = "match" if accept else "decline"
        if not OFFER_WORKFLOW.allows(offer.status, action):
            raise InvalidAcceptanceError(OFFER_NOT_ACTIVE)
        if not self._disable_if_pending(offer.id):
            raise InvalidAcceptanceError(OFFER_NOT_ACTIVE)
        self.session.refresh(offer)

        draft = None
        if accept:
            draft = ContractDraft(
                company_id=offer.author_id,
                student_id=offer.target_id,
                hours_per_week=offer.hours_per_week,
                total_hours=offer.total_hours,
                price_per_hour=offer.price_per_hour,
            )

        logger.info(
            "targeted_offer_answered",
            extra={
                "offer_id": str(offer.id),
                "target_id": offer.target_id,
                "accepted": accept,
            },
        )
        return TargetedOfferResponse(
            offer=offer_to_info(offer),
            accepted=accept,
            contract_draft=draft,
        )

    # =========================================================================
    # Applications
    # =========================================================================

    def apply(self, application: ApplicationDraft, offer_id: UUID) -> ApplicationInfo:
        """
        File a student's application against a non-targeted company offer.

        Raises:
            InvalidApplicationError: offer missing or of another kind, offer
                not PENDING, or the student already applied.
        """
        offer = self.session.get(Offer, offer_id)
        if offer is None or offer.kind != OfferKind.NON_TARGETED_COMPANY.value:
            raise InvalidApplicationError(NO_SUCH_OFFER, offer_id=str(offer_id))
        if not OFFER_WORKFLOW.allows(offer.status, "receive_application"):
            raise InvalidApplicationError(OFFER_NOT_ACTIVE, offer_id=str(offer_id))

        existing = self.session.execute(
            select(Application.id).where(
                Application.student_id == application.student_id,
                Application.offer_id == offer.id,
            )
        ).first()
        if existing is not None:
            raise InvalidApplicationError(ALREADY_APPLIED, offer_id=str(offer_id))

        row = Application(
            student_id=application.student_id,
            price_per_hour=application.price_per_hour,
            offer_id=offer.id,
            status=ApplicationStatus.PENDING.value,
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError:
            logger.warning(
                "concurrent_application_conflict",
                extra={
                    "offer_id": str(offer.id),
                    "student_id": application.student_id,
                },
            )
            raise InvalidApplicationError(ALREADY_APPLIED, offer_id=str(offer_id))

        logger.info(
            "application_filed",
            extra={
                "application_id": str(row.id),
                "offer_id": str(offer.id),
                "student_id": row.student_id,
            },
        )
        return application_to_info(row)

    def list_applications(self, offer_id: UUID, caller: Caller) -> list[ApplicationInfo]:
        """
        Applications on an offer.  Offer author only.

        Raises:
            OfferNotFoundError, AccessDeniedError.
        """
        offer = self._get_offer(offer_id)
        if offer.author_id != caller.identity:
            raise AccessDeniedError(caller.identity)
        return self._selector.applications_for(offer.id)

    def accept(self, application_id: UUID) -> ApplicationInfo:
        """
        Run the acceptance cascade for one application.

        Steps:
            1. Resolve the application and lock its offer.
            2. Require offer and application to be PENDING.
            3. Require the application to be in the offer's application set.
            4. Target -> ACCEPTED, every sibling -> DECLINED.
            5. Offer PENDING -> DISABLED by conditional update; zero rows
               means a concurrent accept won.

        Raises:
            ApplicationNotFoundError: Unknown application id.
            InvalidAcceptanceError: see the messages above.
        """
        target = self._get_application(application_id)

        offer = self._lock_offer(target.offer_id)
        if offer is None:
            raise InvalidAcceptanceError(
                NO_OFFER_FOR_APPLICATION, application_id=str(application_id)
            )

        with LogContext.bind(offer_id=str(offer.id)):
            applications = self._lock_applications(offer.id)
            target = next((a for a in applications if a.id == application_id), None)

            if offer.status != OfferStatus.PENDING.value or (
                target is not None and target.status != ApplicationStatus.PENDING.value
            ):
                raise InvalidAcceptanceError(
                    NOT_ACTIVE_ANYMORE, application_id=str(application_id)
                )
            if target is None:
                raise InvalidAcceptanceError(
                    APPLICATION_NOT_VALID, application_id=str(application_id)
                )

            for application in applications:
                if application.id == target.id:
                    application.status = ApplicationStatus.ACCEPTED.value
                else:
                    application.status = ApplicationStatus.DECLINED.value
            self.session.flush()

            if not self._disable_if_pending(offer.id):
                logger.warning(
                    "concurrent_acceptance_conflict",
                    extra={"application_id": str(application_id)},
                )
                raise InvalidAcceptanceError(
                    NOT_ACTIVE_ANYMORE, application_id=str(application_id)
                )

            logger.info(
                "application_cascade_completed",
                extra={
                    "application_id": str(target.id),
                    "declined": len(applications) - 1,
                },
            )
        return application_to_info(target)

    def accept_for(self, caller: Caller, application_id: UUID) -> ApplicationInfo:
        """
        ``accept`` on behalf of the offer's author.

        Raises:
            ApplicationNotFoundError, AccessDeniedError, InvalidAcceptanceError.
        """
        application = self._get_application(application_id)
        offer = self.session.get(Offer, application.offer_id)
        if offer is None:
            raise InvalidAcceptanceError(
                NO_OFFER_FOR_APPLICATION, application_id=str(application_id)
            )
        if offer.author_id != caller.identity:
            raise AccessDeniedError(caller.identity, CANNOT_ACCEPT)
        return self.accept(application_id)

    def contract_draft_for(self, application_id: UUID) -> ContractDraft:
        """
        Contract terms of an ACCEPTED application.

        Company is the offer author, student the applicant; hours come from
        the offer and the price from the application.

        Raises:
            ApplicationNotFoundError, InvalidAcceptanceError.
        """
        application = self._get_application(application_id)
        if application.status != ApplicationStatus.ACCEPTED.value:
            raise InvalidAcceptanceError(
                "Application has not been accepted!", application_id=str(application_id)
            )
        offer = application.offer
        return ContractDraft(
            company_id=offer.author_id,
            student_id=application.student_id,
            hours_per_week=offer.hours_per_week,
            total_hours=offer.total_hours,
            price_per_hour=application.price_per_hour,
        )
