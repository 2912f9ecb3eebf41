"""Persistence models for the placement kernel."""

from placement_kernel.models.contract import Contract, ContractChangeProposal
from placement_kernel.models.offer import Application, Offer

__all__ = [
    "Application",
    "Contract",
    "ContractChangeProposal",
    "Offer",
]
