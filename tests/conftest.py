"""
Shared fixtures.

Unit tests run against one engine for the whole session.  Each test gets a
``session`` bound to a connection whose outer transaction is rolled back
afterwards, so services may flush and open savepoints freely.  Tests that
need real commits (orchestrator, races) use ``file_session_factory`` or, on
PostgreSQL, ``pg_session_factory``.

``DATABASE_URL`` selects the backend; without it everything runs on
in-memory SQLite and ``postgres``-marked tests are skipped.
"""

import json
import logging
import os
from collections.abc import Callable, Iterator
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from placement_kernel.db.base import Base
from placement_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from placement_kernel.domain.clock import DeterministicClock
from placement_kernel.domain.dtos import ApplicationDraft, ContractDraft
from placement_kernel.domain.identity import Caller, Role
from placement_kernel.domain.offers import (
    NonTargetedCompanyOfferSpec,
    OfferBody,
    StudentOfferSpec,
    TargetedCompanyOfferSpec,
)
from placement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from placement_kernel.services.change_proposal_service import ChangeProposalService
from placement_kernel.services.contract_service import ContractService
from placement_kernel.services.offer_service import OfferService

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///:memory:")
ON_POSTGRES = make_url(DATABASE_URL).get_backend_name() == "postgresql"

COMPANY_ID = "acme"
STUDENT_ID = "alice"
OTHER_STUDENT_ID = "bob"
OTHER_COMPANY_ID = "globex"

MARKERS = {
    "postgres": "needs DATABASE_URL pointing at PostgreSQL",
    "slow_locks": "may block on row locks or use several connections",
}


def pytest_configure(config):
    for name, help_text in MARKERS.items():
        config.addinivalue_line("markers", f"{name}: {help_text}")


def pytest_collection_modifyitems(config, items):
    if ON_POSTGRES:
        return
    skip = pytest.mark.skip(reason="DATABASE_URL does not point at PostgreSQL")
    for item in items:
        if item.get_closest_marker("postgres"):
            item.add_marker(skip)


# -- logging -----------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _quiet_json_logging():
    # Exercise the formatter on every record without printing anything
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _fresh_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


class _LogCapture:
    """Handler sink; calling the instance returns the records seen so far."""

    def __init__(self):
        self.buffer = StringIO()
        self.handler = logging.StreamHandler(self.buffer)
        self.handler.setFormatter(StructuredFormatter())

    def __call__(self) -> list[dict]:
        return [json.loads(line) for line in self.buffer.getvalue().splitlines() if line]


@pytest.fixture
def captured_logs() -> Iterator[_LogCapture]:
    """
    Records from the ``placement_kernel`` logger tree as dicts.

    ``captured_logs()`` inside a test returns everything logged since the
    fixture was set up.
    """
    capture = _LogCapture()
    kernel_logger = logging.getLogger("placement_kernel")
    saved_level = kernel_logger.level
    kernel_logger.setLevel(logging.DEBUG)
    kernel_logger.addHandler(capture.handler)
    try:
        yield capture
    finally:
        kernel_logger.removeHandler(capture.handler)
        kernel_logger.setLevel(saved_level)


# -- database ----------------------------------------------------------------


@pytest.fixture(scope="session")
def db_engine() -> Iterator[Engine]:
    """The process engine with a fresh schema; torn down after the last test."""
    engine = init_engine_from_url(DATABASE_URL, pool_size=10, pool_timeout=10)
    drop_tables()
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


def _wipe(engine: Engine) -> None:
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f"DELETE FROM {table.name}"))


@pytest.fixture
def session(db_engine) -> Iterator[Session]:
    """
    Session joined to an outer transaction that is always rolled back.

    ``join_transaction_mode="create_savepoint"`` turns the services'
    ``begin_nested()`` calls into real SAVEPOINTs inside that transaction.
    """
    with db_engine.connect() as conn:
        outer = conn.begin()
        sess = Session(
            bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False
        )
        try:
            yield sess
        finally:
            sess.close()
            outer.rollback()


@pytest.fixture
def file_session_factory(tmp_path) -> Iterator[sessionmaker[Session]]:
    """Committing sessions over a throwaway SQLite file."""
    engine = build_engine(f"sqlite:///{tmp_path / 'placement.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def pg_session_factory(db_engine) -> Iterator[sessionmaker[Session]]:
    """Committing sessions on the PostgreSQL engine; rows deleted at teardown."""
    if not ON_POSTGRES:
        pytest.skip("requires PostgreSQL")
    yield sessionmaker(bind=db_engine, expire_on_commit=False)
    _wipe(db_engine)


# -- clock, callers and services -------------------------------------------


@pytest.fixture
def deterministic_clock():
    """Frozen at 2024-01-01 12:00 UTC until a test advances it."""
    return DeterministicClock()


@pytest.fixture
def company() -> Caller:
    return Caller(identity=COMPANY_ID, role=Role.COMPANY)


@pytest.fixture
def student() -> Caller:
    return Caller(identity=STUDENT_ID, role=Role.STUDENT)


@pytest.fixture
def other_student() -> Caller:
    return Caller(identity=OTHER_STUDENT_ID, role=Role.STUDENT)


@pytest.fixture
def outsider() -> Caller:
    return Caller(identity=OTHER_COMPANY_ID, role=Role.COMPANY)


@pytest.fixture
def contract_service(session, deterministic_clock) -> ContractService:
    return ContractService(session, deterministic_clock)


@pytest.fixture
def proposal_service(session, contract_service) -> ChangeProposalService:
    return ChangeProposalService(session, contract_service)


@pytest.fixture
def offer_service(session) -> OfferService:
    return OfferService(session)


# -- builders ----------------------------------------------------------------


def make_draft(
    company_id: str = COMPANY_ID,
    student_id: str = STUDENT_ID,
    hours_per_week: float = 20,
    total_hours: float = 520,
    price_per_hour: Decimal = Decimal("15.00"),
) -> ContractDraft:
    return ContractDraft(
        company_id=company_id,
        student_id=student_id,
        hours_per_week=hours_per_week,
        total_hours=total_hours,
        price_per_hour=price_per_hour,
    )


def make_body(
    author_id: str = COMPANY_ID,
    hours_per_week: float = 10,
    total_hours: float = 100,
    title: str = "Backend developer",
) -> OfferBody:
    return OfferBody(
        author_id=author_id,
        title=title,
        description="Part-time work on our API",
        hours_per_week=hours_per_week,
        total_hours=total_hours,
        expertise=("python", "sql"),
    )


@pytest.fixture
def active_contract(contract_service):
    """An ACTIVE 20h/week, 520h contract between acme and alice."""
    return contract_service.validate_and_create(make_draft())


@pytest.fixture
def create_contract(contract_service) -> Callable:
    """Factory: ``create_contract(**draft_fields) -> ContractInfo``."""

    def _create(**kwargs):
        return contract_service.validate_and_create(make_draft(**kwargs))

    return _create


@pytest.fixture
def open_offer(offer_service):
    """A PENDING non-targeted company offer by acme, 10h/week for 100h."""
    return offer_service.save_offer(
        NonTargetedCompanyOfferSpec(body=make_body(), requirements=("degree",))
    )


@pytest.fixture
def targeted_offer(offer_service):
    """A PENDING targeted offer from acme to alice."""
    return offer_service.save_offer(
        TargetedCompanyOfferSpec(
            body=make_body(),
            target_id=STUDENT_ID,
            price_per_hour=Decimal("18.50"),
        )
    )


@pytest.fixture
def student_offer(offer_service):
    return offer_service.save_offer(
        StudentOfferSpec(
            body=make_body(author_id=STUDENT_ID, title="Data analyst for hire"),
            price_per_hour=Decimal("22.00"),
        )
    )


@pytest.fixture
def apply_to(offer_service) -> Callable:
    """Factory: ``apply_to(offer_id, student_id, price) -> ApplicationInfo``."""

    def _apply(offer_id, student_id: str = STUDENT_ID, price: str = "15.00"):
        return offer_service.apply(
            ApplicationDraft(student_id=student_id, price_per_hour=Decimal(price)),
            offer_id,
        )

    return _apply
