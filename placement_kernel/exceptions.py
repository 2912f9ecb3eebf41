"""
Typed Exception Hierarchy for the Placement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rule the kernel enforces (workload ceilings, party authorization,
lifecycle state) fails with its own exception class.  Callers catch by type,
read the machine-readable ``code`` and the structured attributes, and never
parse message strings.

    try:
        orchestrator.accept_proposal(caller, proposal_id)
    except InactiveContractError as e:
        respond(400, code=e.code, contract_id=e.contract_id)
    except AccessDeniedError as e:
        respond(401, code=e.code, reason=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PlacementError (base)
    |
    +-- DomainError                     caller-visible, 4xx class
    |   +-- NotFoundError
    |   |   +-- ContractNotFoundError
    |   |   +-- ChangeProposalNotFoundError
    |   |   +-- OfferNotFoundError
    |   |   +-- ApplicationNotFoundError
    |   |
    |   +-- AccessDeniedError
    |   |   +-- AuthenticationError
    |   |   +-- UnknownIdentityError
    |   |
    |   +-- InvalidArgumentError
    |   |   +-- InvalidContractError
    |   |   +-- InvalidChangeProposalError
    |   |   +-- InvalidOfferError
    |   |   +-- InvalidApplicationError
    |   |
    |   +-- InvalidStateError
    |       +-- InactiveContractError
    |       +-- InvalidAcceptanceError
    |
    +-- InfrastructureError             never conflated with validation
        +-- RoleOracleUnavailableError
        +-- StoreUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | CONTRACT_NOT_FOUND          | Contract id / party pair has no record
                | CHANGE_PROPOSAL_NOT_FOUND   | Proposal id doesn't exist
                | OFFER_NOT_FOUND             | Offer id doesn't exist
                | APPLICATION_NOT_FOUND       | Application id doesn't exist
----------------|-----------------------------|-----------------------------------------
Access          | ACCESS_DENIED               | Caller is not an authorized party
                | NOT_AUTHENTICATED           | Blank or missing identity
                | UNKNOWN_IDENTITY            | Oracle does not know the identity
----------------|-----------------------------|-----------------------------------------
Argument        | INVALID_CONTRACT            | Workload ceiling, same party, existing
                | INVALID_CHANGE_PROPOSAL     | Incoherent delta, too soon, overtaken
                | INVALID_OFFER               | Workload ceiling, self-targeting
                | INVALID_APPLICATION         | Missing/inactive offer, duplicate
----------------|-----------------------------|-----------------------------------------
State           | INACTIVE_CONTRACT           | Contract is not ACTIVE
                | INVALID_ACCEPTANCE          | Offer/application no longer PENDING
----------------|-----------------------------|-----------------------------------------
Infrastructure  | ROLE_ORACLE_UNAVAILABLE     | Identity service unreachable
                | STORE_UNAVAILABLE           | Database unreachable

===============================================================================
DESIGN DECISIONS
===============================================================================

1. ``category`` is a class attribute on every DomainError subclass.  The
   adapter layer maps it to a status code without knowing individual
   classes (not_found -> 404, access_denied -> 401/403, invalid_argument
   and invalid_state -> 400).

2. InfrastructureError does NOT inherit from DomainError.  A handler that
   catches DomainError to render a 4xx response will let infrastructure
   failures propagate to the 5xx path.

3. Message strings are kept stable because the boundary forwards them as
   the human-readable reason, but tests and callers branch on type, code
   and ``reason`` only.

===============================================================================
"""


class PlacementError(Exception):
    """
    Base exception for all placement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PLACEMENT_ERROR"


# =============================================================================
# Domain errors
# =============================================================================


class DomainError(PlacementError):
    """Base exception for locally detected business-rule failures."""

    code: str = "DOMAIN_ERROR"
    category: str = "domain"


# Not-found exceptions


class NotFoundError(DomainError):
    """Base exception for absent entities."""

    code: str = "NOT_FOUND"
    category: str = "not_found"


class ContractNotFoundError(NotFoundError):
    """Contract with given ID (or between given parties) was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(
        self,
        contract_id: str | None = None,
        company_id: str | None = None,
        student_id: str | None = None,
    ):
        self.contract_id = contract_id
        self.company_id = company_id
        self.student_id = student_id
        if contract_id is not None:
            message = f"Contract not found: {contract_id}"
        else:
            message = (
                f"Contract between {company_id} and {student_id} was not found"
            )
        super().__init__(message)


class ChangeProposalNotFoundError(NotFoundError):
    """Change proposal with given ID was not found."""

    code: str = "CHANGE_PROPOSAL_NOT_FOUND"

    def __init__(self, proposal_id: str):
        self.proposal_id = proposal_id
        super().__init__(f"Change proposal not found: {proposal_id}")


class OfferNotFoundError(NotFoundError):
    """Offer with given ID was not found."""

    code: str = "OFFER_NOT_FOUND"

    def __init__(self, offer_id: str):
        self.offer_id = offer_id
        super().__init__(f"Offer not found: {offer_id}")


class ApplicationNotFoundError(NotFoundError):
    """Application with given ID was not found."""

    code: str = "APPLICATION_NOT_FOUND"

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Application not found: {application_id}")


# Access exceptions


class AccessDeniedError(DomainError):
    """Caller is not an authorized party for the operation."""

    code: str = "ACCESS_DENIED"
    category: str = "access_denied"

    def __init__(self, actor_id: str | None, message: str = "Access denied"):
        self.actor_id = actor_id
        super().__init__(message)


class AuthenticationError(AccessDeniedError):
    """No usable identity was presented at the boundary."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, message: str = "User has not been authenticated"):
        super().__init__(None, message)


class UnknownIdentityError(AccessDeniedError):
    """The identity oracle reports that the identity does not exist."""

    code: str = "UNKNOWN_IDENTITY"

    def __init__(self, actor_id: str):
        super().__init__(actor_id, f"Unknown user: {actor_id}")


# Invalid-argument exceptions


class InvalidArgumentError(DomainError):
    """Parameters violate a static invariant."""

    code: str = "INVALID_ARGUMENT"
    category: str = "invalid_argument"


class InvalidContractError(InvalidArgumentError):
    """
    Contract parameters are invalid or the pair already has an active contract.

    ``reason`` is ``"parameters"`` or ``"existing_contract"``.
    """

    code: str = "INVALID_CONTRACT"

    PARAMETERS = "parameters"
    EXISTING_CONTRACT = "existing_contract"

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        if message is None:
            if reason == self.EXISTING_CONTRACT:
                message = "Please cancel the existing contract with this party."
            else:
                message = "One or more contract parameters are invalid."
        super().__init__(message)


class InvalidChangeProposalError(InvalidArgumentError):
    """
    Change proposal is incoherent, or can no longer be applied.

    ``reason`` values:
        incoherent        -- delta changes nothing or breaks a ceiling
        not_pending       -- proposal already accepted or rejected
        end_date_too_soon -- explicit end date precedes the floor end date
        no_longer_valid   -- combined terms break a ceiling at accept time
    """

    code: str = "INVALID_CHANGE_PROPOSAL"

    INCOHERENT = "incoherent"
    NOT_PENDING = "not_pending"
    END_DATE_TOO_SOON = "end_date_too_soon"
    NO_LONGER_VALID = "no_longer_valid"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class InvalidOfferError(InvalidArgumentError):
    """Offer parameters are invalid."""

    code: str = "INVALID_OFFER"

    def __init__(self, message: str):
        super().__init__(message)


class InvalidApplicationError(InvalidArgumentError):
    """Application cannot be filed against the offer."""

    code: str = "INVALID_APPLICATION"

    def __init__(self, message: str, offer_id: str | None = None):
        self.offer_id = offer_id
        super().__init__(message)


# Invalid-state exceptions


class InvalidStateError(DomainError):
    """Operation attempted against an entity in the wrong lifecycle state."""

    code: str = "INVALID_STATE"
    category: str = "invalid_state"


class InactiveContractError(InvalidStateError):
    """Contract is not ACTIVE."""

    code: str = "INACTIVE_CONTRACT"

    def __init__(self, contract_id: str, status: str):
        self.contract_id = contract_id
        self.status = status
        super().__init__(f"Contract {contract_id} is not active (status: {status})")


class InvalidAcceptanceError(InvalidStateError):
    """Offer or application can no longer be accepted."""

    code: str = "INVALID_ACCEPTANCE"

    def __init__(self, message: str, application_id: str | None = None):
        self.application_id = application_id
        super().__init__(message)


# =============================================================================
# Infrastructure errors
# =============================================================================


class InfrastructureError(PlacementError):
    """Base exception for collaborator failures (store, identity service)."""

    code: str = "INFRASTRUCTURE_ERROR"


class RoleOracleUnavailableError(InfrastructureError):
    """The identity/role service could not be consulted."""

    code: str = "ROLE_ORACLE_UNAVAILABLE"

    def __init__(self, identity: str, detail: str):
        self.identity = identity
        self.detail = detail
        super().__init__(f"Role lookup for {identity} failed: {detail}")


class StoreUnavailableError(InfrastructureError):
    """The database could not be reached or the connection failed mid-call."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Store unavailable: {detail}")
