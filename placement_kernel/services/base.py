"""
Common base of the kernel services.

A service is built around the caller's ``Session`` and writes with
``flush()`` only.  Whoever opened the session (``session_scope()`` in the
orchestrator, the rollback fixture in tests) commits or rolls back, which is
what makes the acceptance cascade and accept-then-create-contract
all-or-nothing.  Read-only listings live in ``placement_kernel.selectors``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from placement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the session; never commits."""

    def __init__(self, session: Session):
        self.session = session
