"""
Tests for the SQLAlchemy repositories over in-memory SQLite.

Covers:
- Entity add/get/list
- Ownership listing direction, active filtering, ordering and delete
- The graph store's ceiling over the SQL ownership repository
- Account ordering, soft delete and the template-lineage guard
- Ledger queries and intercompany classification writes
- Duplicate alerts: unordered pair lookup and review round-trip
- session_scope commit/rollback and SQLite foreign keys
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from consol_kernel.db.engine import get_session, session_scope
from consol_kernel.domain.alerts import AlertStatus, DuplicateAlert, MatchType
from consol_kernel.domain.clock import DeterministicClock
from consol_kernel.domain.entities import (
    Account,
    AccountType,
    EliminationStatus,
    Entity,
    EntityPurpose,
    LedgerEntry,
    LedgerLine,
    NormalBalance,
    OwnershipRelationship,
)
from consol_kernel.domain.parties import ExternalContact, InternalUser
from consol_kernel.exceptions import (
    AccountNotFoundError,
    AlertNotFoundError,
    DataAccessError,
    EntityNotFoundError,
    LedgerEntryNotFoundError,
    OwnershipOverallocatedError,
    RelationshipNotFoundError,
    SystemTemplateImmutableError,
)
from consol_kernel.repositories.sql import SqlRepositories
from consol_modules.ownership import OwnershipGraphStore


@pytest.fixture
def sql(sqlite_session) -> SqlRepositories:
    repos = SqlRepositories(sqlite_session)
    for entity_id, name in (("A", "Alpha"), ("B", "Beta"), ("C", "Gamma")):
        repos.entities.add(Entity(id=entity_id, name=name))
    return repos


def _rel(rel_id, parent, child, pct, **kwargs) -> OwnershipRelationship:
    return OwnershipRelationship(
        id=rel_id,
        parent_entity_id=parent,
        child_entity_id=child,
        ownership_percentage=Decimal(pct),
        **kwargs,
    )


class TestSqlEntityRepository:

    def test_add_and_get(self, sql):
        """Entities round-trip through the entities table."""
        sql.entities.add(
            Entity(id="S", name="Solar SPE", entity_purpose=EntityPurpose.SPE, project_type="solar")
        )

        entity = sql.entities.get("S")

        assert entity.name == "Solar SPE"
        assert entity.entity_purpose == EntityPurpose.SPE
        assert entity.project_type == "solar"
        assert sql.entities.exists("S")

    def test_unknown(self, sql):
        """Unknown ids raise EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            sql.entities.get("missing")
        assert sql.entities.exists("missing") is False

    def test_list_by_name(self, sql):
        """Entities are listed by name."""
        assert [e.name for e in sql.entities.list()] == ["Alpha", "Beta", "Gamma"]


class TestSqlOwnershipRepository:

    def test_direction_filters(self, sql):
        """as_parent and as_child select one side of the edge."""
        sql.ownership.add(_rel("r1", "A", "B", "60"))
        sql.ownership.add(_rel("r2", "B", "C", "40"))

        assert {r.id for r in sql.ownership.list_by_entity("B")} == {"r1", "r2"}
        assert [r.id for r in sql.ownership.list_by_entity("B", as_parent=True)] == ["r2"]
        assert [r.id for r in sql.ownership.list_by_entity("B", as_child=True)] == ["r1"]

    def test_percentage_round_trips_as_decimal(self, sql):
        """Percentages come back as Decimal, not float."""
        sql.ownership.add(_rel("r1", "A", "B", "33.333333333"))

        rel = sql.ownership.get("r1")

        assert isinstance(rel.ownership_percentage, Decimal)
        assert rel.ownership_percentage == Decimal("33.333333333")

    def test_ordering_most_recent_first(self, sql):
        """Listings are ordered by effective date descending, then id."""
        sql.ownership.add(_rel("r-old", "A", "C", "10", effective_date=date(2020, 1, 1)))
        sql.ownership.add(_rel("r-new", "B", "C", "10", effective_date=date(2023, 1, 1)))
        sql.ownership.add(_rel("r-same", "A", "B", "10", effective_date=date(2023, 1, 1)))

        ids = [r.id for r in sql.ownership.list_by_entity("C")]

        assert ids == ["r-new", "r-old"]
        assert [r.id for r in sql.ownership.list_by_entity("B")] == ["r-new", "r-same"]

    def test_active_only(self, sql):
        """Relationships ended before as_of are excluded."""
        sql.ownership.add(_rel("r1", "A", "B", "60", end_date=date(2023, 12, 31)))
        sql.ownership.add(_rel("r2", "C", "B", "40", end_date=date(2024, 1, 1)))

        active = sql.ownership.list_by_entity("B", active_only=True, as_of=date(2024, 1, 1))

        assert [r.id for r in active] == ["r2"]

    def test_active_only_requires_as_of(self, sql):
        """active_only without a date is a programming error."""
        with pytest.raises(ValueError):
            sql.ownership.list_by_entity("B", active_only=True)

    def test_save_and_delete(self, sql):
        """save updates the row in place; delete removes it."""
        rel = sql.ownership.add(_rel("r1", "A", "B", "60"))
        sql.ownership.save(
            OwnershipRelationship(
                id=rel.id,
                parent_entity_id="A",
                child_entity_id="B",
                ownership_percentage=Decimal("75"),
                notes="step-up",
            )
        )

        assert sql.ownership.get("r1").ownership_percentage == Decimal("75")
        assert sql.ownership.get("r1").notes == "step-up"

        sql.ownership.delete("r1")

        with pytest.raises(RelationshipNotFoundError):
            sql.ownership.get("r1")

    def test_graph_store_ceiling_over_sql(self, sql):
        """The 100% ceiling holds with the SQL repository underneath."""
        store = OwnershipGraphStore(sql.entities, sql.ownership, DeterministicClock())
        store.create_relationship("A", "C", Decimal("70"))

        with pytest.raises(OwnershipOverallocatedError):
            store.create_relationship("B", "C", Decimal("40"))

        store.create_relationship("B", "C", Decimal("30"))
        assert store.get_total_ownership("C") == Decimal("100")


class TestSqlAccountRepository:

    @pytest.fixture
    def accounts(self, sql):
        for number, name, kind, extra in (
            ("2000", "Accounts Payable", AccountType.LIABILITY, {}),
            ("1000", "Cash", AccountType.ASSET, {}),
            ("1500", "Old Bank", AccountType.ASSET, {"is_active": False}),
            ("3900", "Retained Earnings", AccountType.EQUITY, {"template_account_id": "tpl-re"}),
        ):
            sql.accounts.add(
                Account(
                    id=f"A-{number}",
                    entity_id="A",
                    account_number=number,
                    account_name=name,
                    account_type=kind,
                    current_balance=Decimal("125.50"),
                    **extra,
                )
            )
        return sql.accounts

    def test_list_ordered_by_number(self, accounts):
        """Accounts are listed by account number."""
        assert [a.account_number for a in accounts.list("A")] == ["1000", "1500", "2000", "3900"]

    def test_filters(self, accounts):
        """active_only and account_type narrow the listing."""
        assert [a.account_number for a in accounts.list("A", active_only=True)] == [
            "1000", "2000", "3900",
        ]
        assert [
            a.account_number for a in accounts.list("A", account_type=AccountType.ASSET)
        ] == ["1000", "1500"]

    def test_fields_round_trip(self, accounts):
        """Balances stay Decimal and the normal balance is persisted."""
        account = accounts.get("A-2000")

        assert account.current_balance == Decimal("125.50")
        assert account.normal_balance == NormalBalance.CREDIT
        assert account.is_header is False

    def test_soft_delete(self, accounts):
        """Soft delete deactivates and keeps the row."""
        result = accounts.delete("A-1000")

        assert result.is_active is False
        assert accounts.get("A-1000").is_active is False

    def test_hard_delete(self, accounts):
        """Hard delete removes an account without lineage."""
        accounts.delete("A-2000", hard=True)

        with pytest.raises(AccountNotFoundError):
            accounts.get("A-2000")

    def test_hard_delete_with_lineage_blocked(self, accounts):
        """Template-derived accounts cannot be hard deleted."""
        with pytest.raises(SystemTemplateImmutableError):
            accounts.delete("A-3900", hard=True)

        assert accounts.get("A-3900").is_active is True


class TestSqlLedgerEntryRepository:

    @pytest.fixture
    def ledger(self, sql):
        for entry_id, entity_id, day in (("e2", "A", 20), ("e1", "A", 5), ("e3", "B", 10)):
            sql.ledger.add(
                LedgerEntry(
                    id=entry_id,
                    entity_id=entity_id,
                    entry_date=date(2024, 1, day),
                    description=f"entry {entry_id}",
                    lines=(
                        LedgerLine("cash", debit_amount=Decimal("100.25")),
                        LedgerLine("revenue", credit_amount=Decimal("100.25")),
                    ),
                )
            )
        return sql.ledger

    def test_query_ordering_and_dates(self, ledger):
        """Queries are ordered by date and honor inclusive bounds."""
        assert [e.id for e in ledger.query(["A", "B"])] == ["e1", "e3", "e2"]
        assert [
            e.id for e in ledger.query(["A", "B"], start_date=date(2024, 1, 10),
                                       end_date=date(2024, 1, 20))
        ] == ["e3", "e2"]
        assert ledger.query([]) == []

    def test_lines_round_trip(self, ledger):
        """Lines come back in order with Decimal amounts."""
        entry = ledger.get("e1")

        assert [line.account_id for line in entry.lines] == ["cash", "revenue"]
        assert entry.lines[0].debit_amount == Decimal("100.25")
        assert entry.lines[1].credit_amount == Decimal("100.25")

    def test_save_classification(self, ledger):
        """save writes the intercompany fields."""
        entry = ledger.get("e1")
        ledger.save(
            LedgerEntry(
                id=entry.id,
                entity_id=entry.entity_id,
                entry_date=entry.entry_date,
                description=entry.description,
                lines=entry.lines,
                is_intercompany=True,
                counterparty_entity_id="B",
                elimination_status=EliminationStatus.PENDING_ELIMINATION,
            )
        )

        (flagged,) = ledger.query(["A", "B"], is_intercompany=True)
        assert flagged.id == "e1"
        assert flagged.counterparty_entity_id == "B"
        assert flagged.elimination_status == EliminationStatus.PENDING_ELIMINATION
        assert len(ledger.query(["A", "B"], is_intercompany=False)) == 2

    def test_unknown(self, ledger):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger.get("missing")


class TestSqlDuplicateAlertRepository:

    def _alert(self, alert_id="al-1", **kwargs) -> DuplicateAlert:
        return DuplicateAlert(
            id=alert_id,
            entity_id="A",
            account_id="A-1000",
            duplicate_entity_id="B",
            duplicate_account_id="B-1000",
            match_type=MatchType.EXACT_MATCH,
            confidence_score=1.0,
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            **kwargs,
        )

    def test_find_by_pair_either_order(self, sql):
        """The pair lookup is unordered."""
        sql.alerts.add(self._alert())

        assert sql.alerts.find_by_account_pair("A-1000", "B-1000").id == "al-1"
        assert sql.alerts.find_by_account_pair("B-1000", "A-1000").id == "al-1"
        assert sql.alerts.find_by_account_pair("A-1000", "B-2000") is None

    def test_review_round_trip_internal_user(self, sql):
        """An internal reviewer is rebuilt from the stored columns."""
        sql.alerts.add(self._alert())
        reviewer = InternalUser(user_id="u1", display_name="Dana Controller")

        sql.alerts.save(
            self._alert(
                status=AlertStatus.CONFIRMED,
                reviewed_at=datetime(2024, 1, 2, tzinfo=UTC),
                reviewed_by=reviewer,
                notes="same bank account",
            )
        )

        alert = sql.alerts.get("al-1")
        assert alert.status == AlertStatus.CONFIRMED
        assert alert.reviewed_by == reviewer
        assert alert.notes == "same bank account"
        assert alert.reviewed_at is not None

    def test_review_round_trip_external_contact(self, sql):
        """An external reviewer keeps its company."""
        sql.alerts.add(self._alert())
        contact = ExternalContact(contact_id="c9", display_name="Pat", company="Audit LLP")

        sql.alerts.save(self._alert(status=AlertStatus.DISMISSED, reviewed_by=contact))

        assert sql.alerts.get("al-1").reviewed_by == contact

    def test_list_filters(self, sql):
        """Alerts filter by either entity and by status."""
        sql.alerts.add(self._alert("al-1"))
        sql.alerts.add(
            DuplicateAlert(
                id="al-2",
                entity_id="B",
                account_id="B-2000",
                duplicate_entity_id="C",
                duplicate_account_id="C-2000",
                match_type=MatchType.SIMILAR_NAME,
                confidence_score=0.8,
                status=AlertStatus.DISMISSED,
                created_at=datetime(2024, 1, 2, tzinfo=UTC),
            )
        )

        assert {a.id for a in sql.alerts.list(entity_id="B")} == {"al-1", "al-2"}
        assert [a.id for a in sql.alerts.list(entity_id="C")] == ["al-2"]
        assert [a.id for a in sql.alerts.list(status=AlertStatus.PENDING)] == ["al-1"]
        assert sql.alerts.get("al-2").confidence_score == pytest.approx(0.8)

    def test_unknown(self, sql):
        with pytest.raises(AlertNotFoundError):
            sql.alerts.get("missing")


class TestSessionScope:
    """session_scope owns commit and rollback; repositories only flush."""

    def test_commit_on_success(self, sqlite_session):
        with session_scope() as session:
            SqlRepositories(session).entities.add(Entity(id="X", name="Committed"))

        check = get_session()
        try:
            assert SqlRepositories(check).entities.get("X").name == "Committed"
        finally:
            check.close()

    def test_rollback_on_error(self, sqlite_session):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                SqlRepositories(session).entities.add(Entity(id="Y", name="Discarded"))
                raise RuntimeError("boom")

        check = get_session()
        try:
            assert SqlRepositories(check).entities.exists("Y") is False
        finally:
            check.close()

    def test_foreign_keys_enforced(self, sql):
        """SQLite rejects a relationship to an unknown entity."""
        with pytest.raises(DataAccessError) as exc_info:
            sql.ownership.add(_rel("r1", "A", "missing", "10"))

        assert exc_info.value.operation == "ownership.add"
