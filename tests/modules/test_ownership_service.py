"""
Tests for OwnershipGraphStore and OwnershipResolver.

Covers:
- Relationship creation, validation and the 100% ceiling
- Updates, divestiture (end) and deletion
- Active-on-date filtering
- Subsidiary trees and ownership chains over the repository
- The H/O/P/F look-through scenario
"""

from datetime import date
from decimal import Decimal

import pytest

from consol_kernel.domain.entities import OwnershipRelationship
from consol_kernel.domain.warnings import WarningCode
from consol_kernel.exceptions import (
    EntityNotFoundError,
    InvalidOwnershipPercentageError,
    OwnershipOverallocatedError,
    RelationshipNotFoundError,
    SelfOwnershipError,
)


@pytest.fixture
def abc(create_entity):
    for name in ("A", "B", "C", "D"):
        create_entity(name)


class TestCreateRelationship:
    """Tests for create_relationship validation."""

    def test_create_defaults(self, store, abc, deterministic_clock):
        """Type defaults to ownership and effective_date to today."""
        rel = store.create_relationship("A", "B", Decimal("60"))

        assert rel.relationship_type == "ownership"
        assert rel.effective_date == deterministic_clock.today()
        assert rel.end_date is None
        assert store.get_relationship(rel.id) == rel

    def test_self_ownership_rejected(self, store, abc):
        """An entity cannot own itself."""
        with pytest.raises(SelfOwnershipError):
            store.create_relationship("A", "A", Decimal("10"))

    @pytest.mark.parametrize("pct", ["0", "-5", "100.01"])
    def test_percentage_out_of_range(self, store, abc, pct):
        """Percentages must be in (0, 100]."""
        with pytest.raises(InvalidOwnershipPercentageError):
            store.create_relationship("A", "B", Decimal(pct))

    def test_unknown_endpoint(self, store, abc):
        """Both endpoints must exist."""
        with pytest.raises(EntityNotFoundError):
            store.create_relationship("A", "missing", Decimal("10"))
        with pytest.raises(EntityNotFoundError):
            store.create_relationship("missing", "A", Decimal("10"))

    def test_exactly_one_hundred_allowed(self, store, abc):
        """Two owners may fill the child to exactly 100%."""
        store.create_relationship("A", "C", Decimal("60"))
        store.create_relationship("B", "C", Decimal("40"))

        assert store.get_total_ownership("C") == Decimal("100")
        assert store.get_available_ownership("C") == Decimal("0")

    def test_overallocation_rejected(self, store, abc, captured_logs):
        """A write that would push the child past 100% is refused."""
        store.create_relationship("A", "C", Decimal("60"))

        with pytest.raises(OwnershipOverallocatedError) as exc_info:
            store.create_relationship("B", "C", Decimal("50"))

        assert exc_info.value.available == Decimal("40")
        assert exc_info.value.requested == Decimal("50")
        assert store.get_total_ownership("C") == Decimal("60")
        assert any(r["message"] == "ownership_overallocated" for r in captured_logs())

    def test_non_ownership_type_not_counted(self, store, abc):
        """Other relationship types neither count nor are limited."""
        store.create_relationship("A", "C", Decimal("100"))
        store.create_relationship("B", "C", Decimal("100"), relationship_type="management")

        assert store.get_total_ownership("C") == Decimal("100")
        assert len(store.get_owners("C")) == 1

    def test_ended_relationship_frees_capacity(self, store, abc, deterministic_clock):
        """An ended relationship no longer counts toward the ceiling."""
        rel = store.create_relationship("A", "C", Decimal("100"))
        store.end_relationship(rel.id, end_date=date(2023, 12, 31))

        store.create_relationship("B", "C", Decimal("100"))

        assert store.get_total_ownership("C") == Decimal("100")


class TestUpdateRelationship:
    """Tests for update_relationship."""

    def test_update_percentage(self, store, abc):
        """The percentage can be changed within the ceiling."""
        rel = store.create_relationship("A", "C", Decimal("60"))

        updated = store.update_relationship(rel.id, ownership_percentage=Decimal("90"))

        assert updated.ownership_percentage == Decimal("90")
        assert store.get_total_ownership("C") == Decimal("90")

    def test_update_excludes_self_from_available(self, store, abc):
        """The reported available figure ignores the relationship being updated."""
        rel = store.create_relationship("A", "C", Decimal("60"))
        store.create_relationship("B", "C", Decimal("30"))

        with pytest.raises(OwnershipOverallocatedError) as exc_info:
            store.update_relationship(rel.id, ownership_percentage=Decimal("80"))

        assert exc_info.value.available == Decimal("70")
        assert store.get_relationship(rel.id).ownership_percentage == Decimal("60")

    def test_update_rejects_endpoint_change(self, store, abc):
        """Endpoints are immutable."""
        rel = store.create_relationship("A", "C", Decimal("60"))

        with pytest.raises(ValueError):
            store.update_relationship(rel.id, child_entity_id="D")

    def test_update_validates_percentage(self, store, abc):
        """Updated percentages are range-checked."""
        rel = store.create_relationship("A", "C", Decimal("60"))

        with pytest.raises(InvalidOwnershipPercentageError):
            store.update_relationship(rel.id, ownership_percentage=Decimal("0"))

    def test_update_unknown(self, store):
        """Unknown relationship ids raise."""
        with pytest.raises(RelationshipNotFoundError):
            store.update_relationship("missing", notes="x")


class TestEndAndDelete:
    """Tests for end_relationship and delete_relationship."""

    def test_end_defaults_to_today(self, store, abc, deterministic_clock):
        """Ending keeps the row with end_date set to today."""
        rel = store.create_relationship("A", "B", Decimal("50"))

        ended = store.end_relationship(rel.id)

        assert ended.end_date == deterministic_clock.today()
        assert store.get_relationship(rel.id).end_date == deterministic_clock.today()

    def test_ended_today_is_still_active(self, store, abc):
        """Active means end_date on or after today."""
        rel = store.create_relationship("A", "B", Decimal("50"))
        store.end_relationship(rel.id)

        assert store.get_total_ownership("B") == Decimal("50")

    def test_ended_yesterday_is_inactive(self, store, abc, deterministic_clock):
        """After the end date passes the relationship drops out."""
        rel = store.create_relationship("A", "B", Decimal("50"))
        store.end_relationship(rel.id)
        deterministic_clock.advance_days(1)

        assert store.get_owners("B") == []
        assert len(store.get_owners("B", active_only=False)) == 1

    def test_delete(self, store, abc):
        """Hard delete removes the relationship."""
        rel = store.create_relationship("A", "B", Decimal("50"))

        store.delete_relationship(rel.id)

        with pytest.raises(RelationshipNotFoundError):
            store.get_relationship(rel.id)


class TestReads:
    """Tests for relationship listings."""

    def test_get_relationships_both_directions(self, store, abc):
        """With no direction flag both sides are returned."""
        store.create_relationship("A", "B", Decimal("50"), relationship_id="r1")
        store.create_relationship("B", "C", Decimal("50"), relationship_id="r2")

        ids = {r.id for r in store.get_relationships("B")}

        assert ids == {"r1", "r2"}
        assert [r.id for r in store.get_relationships("B", as_parent=True)] == ["r2"]
        assert [r.id for r in store.get_relationships("B", as_child=True)] == ["r1"]

    def test_subsidiaries(self, store, abc):
        """get_subsidiaries lists outgoing ownership edges."""
        store.create_relationship("A", "B", Decimal("50"))
        store.create_relationship("A", "C", Decimal("70"))

        assert {r.child_entity_id for r in store.get_subsidiaries("A")} == {"B", "C"}

    def test_unknown_entity_reads_are_empty(self, store):
        """Reads for an unknown entity return nothing."""
        assert store.get_owners("missing") == []
        assert store.get_total_ownership("missing") == Decimal("0")


class TestResolver:
    """Tests for OwnershipResolver over the portfolio."""

    def test_h_holds_eighty_percent_of_p(self, resolver, portfolio):
        """H -> O 100% -> P 80% gives H 80% of P."""
        tree = resolver.get_subsidiary_tree(portfolio.holding)

        (opco,) = tree.root.children
        (project,) = opco.children
        assert project.entity_id == portfolio.project
        assert project.effective_ownership == Decimal("80")
        assert project.entity.name == "Project"
        assert tree.truncated is False

    def test_chain_and_effective_interest(self, resolver, portfolio):
        """P's chain reaches H through O and G through both H and F."""
        chain = resolver.get_ownership_chain(portfolio.project)

        assert resolver.calculate_effective_interest(chain, portfolio.holding) == Decimal("80")
        assert resolver.calculate_effective_interest(chain, portfolio.fund) == Decimal("20")
        assert resolver.calculate_effective_interest(chain, portfolio.group) == Decimal("100")

    def test_as_of_date_filters_ended_edges(self, resolver, store, portfolio):
        """A tree as of a later date omits relationships ended before it."""
        store.end_relationship("r-op", end_date=date(2024, 6, 30))

        before = resolver.get_subsidiary_tree(portfolio.holding, as_of=date(2024, 6, 30))
        after = resolver.get_subsidiary_tree(portfolio.holding, as_of=date(2024, 7, 1))

        assert before.root.children[0].children != ()
        assert after.root.children[0].children == ()

    def test_cycle_in_repository(self, resolver, store, abc):
        """A cycle recorded in the repository is cut, not followed forever."""
        store.create_relationship("A", "B", Decimal("60"))
        store.create_relationship("B", "C", Decimal("60"))
        store.create_relationship("C", "A", Decimal("10"))

        tree = resolver.get_subsidiary_tree("A")

        assert tree.truncated is True
        assert tree.warnings[0].code == WarningCode.CYCLE_DETECTED

    def test_unknown_root(self, resolver):
        """Traversal from an unknown entity raises."""
        with pytest.raises(EntityNotFoundError):
            resolver.get_subsidiary_tree("missing")
        with pytest.raises(EntityNotFoundError):
            resolver.get_ownership_chain("missing")

    def test_entities_read_once_without_existence_checks(
        self, resolver, repos, portfolio, monkeypatch
    ):
        """Tree nodes are hydrated with one get per entity; unknown ones stay bare."""
        repos.ownership.add(OwnershipRelationship(
            id="r-og", parent_entity_id=portfolio.operator,
            child_entity_id="GHOST", ownership_percentage=Decimal("50"),
        ))
        calls = []
        real_get = repos.entities.get

        def counting_get(entity_id):
            calls.append(entity_id)
            return real_get(entity_id)

        def no_exists(entity_id):
            raise AssertionError(f"exists({entity_id!r}) called")

        monkeypatch.setattr(repos.entities, "get", counting_get)
        monkeypatch.setattr(repos.entities, "exists", no_exists)

        tree = resolver.get_subsidiary_tree(portfolio.holding)

        (opco,) = tree.root.children
        ghost = next(n for n in opco.children if n.entity_id == "GHOST")
        assert ghost.entity is None
        assert ghost.effective_ownership == Decimal("50")
        assert calls.count("GHOST") == 1
        assert calls.count(portfolio.project) == 1

    def test_available_ownership(self, resolver, portfolio):
        """P is fully owned; O has nothing left either."""
        assert resolver.get_available_ownership(portfolio.project) == Decimal("0")
        assert len(resolver.get_owners(portfolio.project)) == 2
