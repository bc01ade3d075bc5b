"""
Pytest fixtures for the consolidation engine test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock (today = 2024-01-01)
- In-memory collaborators and the services wired over them
- Factory fixtures for entities, accounts and ledger entries
- The H/O/P/F portfolio used by the end-to-end scenarios
- An in-memory SQLite session for the SQL repository tests
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from consol_config import EngineConfig
from consol_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from consol_kernel.domain.clock import DeterministicClock
from consol_kernel.domain.entities import (
    Account,
    AccountType,
    Entity,
    EntityPurpose,
    LedgerEntry,
    LedgerLine,
)
from consol_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from consol_kernel.repositories.memory import InMemoryRepositories
from consol_modules.consolidation import ConsolidationEngine
from consol_modules.duplicates import DuplicateAccountDetector
from consol_modules.intercompany import IntercompanyClassifier
from consol_modules.ledger import AccountLedgerReader
from consol_modules.ownership import OwnershipGraphStore, OwnershipResolver


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture consol_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, store):
            store.create_relationship(...)
            logs = captured_logs()
            assert any(r["message"] == "ownership_relationship_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("consol_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing (today is 2024-01-01)."""
    return DeterministicClock()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig.with_defaults()


# =============================================================================
# Collaborators and services
# =============================================================================


@pytest.fixture
def repos() -> InMemoryRepositories:
    """Fresh in-memory collaborators for one test."""
    return InMemoryRepositories()


@pytest.fixture
def ledger_reader(repos, engine_config) -> AccountLedgerReader:
    return AccountLedgerReader(repos.entities, repos.accounts, engine_config.trial_balance)


@pytest.fixture
def store(repos, deterministic_clock) -> OwnershipGraphStore:
    return OwnershipGraphStore(repos.entities, repos.ownership, deterministic_clock)


@pytest.fixture
def resolver(store, repos, deterministic_clock) -> OwnershipResolver:
    return OwnershipResolver(store, repos.entities, deterministic_clock)


@pytest.fixture
def classifier(repos, engine_config) -> IntercompanyClassifier:
    return IntercompanyClassifier(repos.entities, repos.ledger, engine_config.intercompany)


@pytest.fixture
def detector(ledger_reader, store, repos, engine_config, deterministic_clock):
    return DuplicateAccountDetector(
        ledger_reader,
        store,
        repos.alerts,
        engine_config.duplicate_detection,
        deterministic_clock,
    )


@pytest.fixture
def consolidation_engine(resolver, ledger_reader, classifier, repos, deterministic_clock):
    return ConsolidationEngine(
        resolver, ledger_reader, classifier, repos.entities, deterministic_clock
    )


# =============================================================================
# Factory fixtures
# =============================================================================


@pytest.fixture
def create_entity(repos):
    """Factory fixture to create entities; the id defaults to the name."""

    def _create(
        name: str,
        entity_id: str | None = None,
        entity_purpose: EntityPurpose = EntityPurpose.OPERATING_COMPANY,
        project_type: str | None = None,
    ) -> Entity:
        return repos.entities.add(
            Entity(
                id=entity_id or name,
                name=name,
                entity_purpose=entity_purpose,
                project_type=project_type,
            )
        )

    return _create


@pytest.fixture
def create_account(repos):
    """Factory fixture to create accounts with id ``<entity>-<number>``."""

    def _create(
        entity_id: str,
        account_number: str,
        account_name: str,
        account_type: AccountType,
        balance: str | Decimal = "0",
        **kwargs,
    ) -> Account:
        return repos.accounts.add(
            Account(
                id=kwargs.pop("account_id", f"{entity_id}-{account_number}"),
                entity_id=entity_id,
                account_number=account_number,
                account_name=account_name,
                account_type=account_type,
                current_balance=Decimal(balance),
                **kwargs,
            )
        )

    return _create


@pytest.fixture
def create_entry(repos):
    """Factory fixture to create balanced two-line ledger entries."""

    def _create(
        entry_id: str,
        entity_id: str,
        amount: str | Decimal,
        description: str = "",
        entry_date: date = date(2024, 1, 1),
        debit_account: str = "debit",
        credit_account: str = "credit",
        **kwargs,
    ) -> LedgerEntry:
        value = Decimal(amount)
        return repos.ledger.add(
            LedgerEntry(
                id=entry_id,
                entity_id=entity_id,
                entry_date=entry_date,
                description=description,
                lines=(
                    LedgerLine(account_id=debit_account, debit_amount=value),
                    LedgerLine(account_id=credit_account, credit_amount=value),
                ),
                **kwargs,
            )
        )

    return _create


# =============================================================================
# Portfolio
# =============================================================================


@dataclass(frozen=True)
class Portfolio:
    """
    G (synthetic group root) owns 100% of H and 100% of F.
    H owns 100% of O; O owns 80% of P; F owns 20% of P.
    """

    group: str = "G"
    holding: str = "H"
    operator: str = "O"
    project: str = "P"
    fund: str = "F"


@pytest.fixture
def portfolio(create_entity, create_account, store) -> Portfolio:
    p = Portfolio()
    create_entity("Group", p.group, EntityPurpose.HOLDING_COMPANY)
    create_entity("Holdco", p.holding, EntityPurpose.HOLDING_COMPANY)
    create_entity("Opco", p.operator)
    create_entity("Project", p.project, EntityPurpose.SPE, project_type="solar")
    create_entity("Fund", p.fund, EntityPurpose.HOLDING_COMPANY)

    store.create_relationship(p.group, p.holding, Decimal("100"), relationship_id="r-gh")
    store.create_relationship(p.group, p.fund, Decimal("100"), relationship_id="r-gf")
    store.create_relationship(p.holding, p.operator, Decimal("100"), relationship_id="r-ho")
    store.create_relationship(p.operator, p.project, Decimal("80"), relationship_id="r-op")
    store.create_relationship(p.fund, p.project, Decimal("20"), relationship_id="r-fp")

    create_account(p.holding, "1000", "Cash", AccountType.ASSET, "500")
    create_account(p.holding, "3000", "Retained Earnings", AccountType.EQUITY, "500")

    create_account(p.operator, "1000", "Cash", AccountType.ASSET, "1000")
    create_account(p.operator, "2000", "Accounts Payable", AccountType.LIABILITY, "400")
    create_account(p.operator, "4000", "Revenue", AccountType.REVENUE, "800")
    create_account(p.operator, "5000", "Operating Expenses", AccountType.EXPENSE, "300")

    create_account(p.project, "1000", "Cash", AccountType.ASSET, "200")
    create_account(p.project, "1100", "Accounts Receivable", AccountType.ASSET, "100")
    create_account(p.project, "4000", "Revenue", AccountType.REVENUE, "150")

    create_account(p.fund, "1000", "Cash", AccountType.ASSET, "50")
    return p


# =============================================================================
# SQLite session
# =============================================================================


@pytest.fixture
def sqlite_session():
    """
    In-memory SQLite session with all tables created.

    The engine is module-global state; it is reset at teardown.
    """
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    session = get_session()
    yield session
    try:
        session.rollback()
        session.close()
    finally:
        drop_tables()
        reset_engine()
