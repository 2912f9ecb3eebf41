"""Lifecycle states and state machines for placement entities.

Each persisted entity carries a status drawn from one of the enums below;
the matching ``Workflow`` is the single statement of which actions are legal
from which status.  Models import the enums from here so the ORM and the DTOs
share one vocabulary.
"""

from enum import Enum

from placement_kernel.domain.workflow import Guard, Transition, Workflow
from placement_kernel.logging_config import get_logger

logger = get_logger("domain.lifecycles")


class ContractStatus(str, Enum):
    """Contract lifecycle status."""

    ACTIVE = "ACTIVE"          # In force; may be amended or terminated
    TERMINATED = "TERMINATED"  # Ended early by either party
    EXPIRED = "EXPIRED"        # Ran past its end date


class ProposalStatus(str, Enum):
    """Change proposal negotiation status."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class OfferStatus(str, Enum):
    """Offer status.  DISABLED is terminal; the record is retained."""

    PENDING = "PENDING"
    DISABLED = "DISABLED"


class ApplicationStatus(str, Enum):
    """Application status."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


_CONTRACT_ACTIVE = Guard(
    "contract_active",
    "Contract must be ACTIVE at the moment the action runs",
)

CONTRACT_WORKFLOW = Workflow(
    name="contract",
    description="Contract from creation to termination or expiry",
    initial_state=ContractStatus.ACTIVE.value,
    states=tuple(s.value for s in ContractStatus),
    transitions=(
        Transition("ACTIVE", "ACTIVE", action="amend", guard=_CONTRACT_ACTIVE),
        Transition("ACTIVE", "ACTIVE", action="propose", guard=_CONTRACT_ACTIVE),
        Transition("ACTIVE", "TERMINATED", action="terminate"),
        Transition("ACTIVE", "EXPIRED", action="expire"),
    ),
    terminal_states=("TERMINATED", "EXPIRED"),
)

PROPOSAL_WORKFLOW = Workflow(
    name="contract_change_proposal",
    description="Counter-party review of an amendment to an active contract",
    initial_state=ProposalStatus.PENDING.value,
    states=tuple(s.value for s in ProposalStatus),
    transitions=(
        Transition("PENDING", "ACCEPTED", action="accept", guard=_CONTRACT_ACTIVE),
        Transition("PENDING", "REJECTED", action="reject", guard=_CONTRACT_ACTIVE),
    ),
    terminal_states=("ACCEPTED", "REJECTED"),
)

OFFER_WORKFLOW = Workflow(
    name="offer",
    description="Posted offer until matched or withdrawn",
    initial_state=OfferStatus.PENDING.value,
    states=tuple(s.value for s in OfferStatus),
    transitions=(
        Transition("PENDING", "PENDING", action="receive_application"),
        Transition("PENDING", "DISABLED", action="match"),
        Transition("PENDING", "DISABLED", action="decline"),
        Transition("PENDING", "DISABLED", action="withdraw"),
    ),
    terminal_states=("DISABLED",),
)

APPLICATION_WORKFLOW = Workflow(
    name="application",
    description="Student application to a non-targeted company offer",
    initial_state=ApplicationStatus.PENDING.value,
    states=tuple(s.value for s in ApplicationStatus),
    transitions=(
        Transition("PENDING", "ACCEPTED", action="accept"),
        Transition("PENDING", "DECLINED", action="decline"),
    ),
    terminal_states=("ACCEPTED", "DECLINED"),
)


logger.debug(
    "lifecycles_defined",
    extra={
        "workflows": [
            w.name
            for w in (
                CONTRACT_WORKFLOW,
                PROPOSAL_WORKFLOW,
                OFFER_WORKFLOW,
                APPLICATION_WORKFLOW,
            )
        ],
    },
)
