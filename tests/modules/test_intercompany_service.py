"""
Tests for IntercompanyClassifier.

Covers:
- Detection of flagged entries with date filtering
- Manual flagging and counterparty validation
- Elimination status transitions (validate-all-first)
- Heuristic suggestions (never change status)
- Elimination entries net to zero
"""

from datetime import date
from decimal import Decimal

import pytest

from consol_kernel.domain.entities import EliminationStatus, LedgerEntry, LedgerLine
from consol_kernel.exceptions import (
    EntityNotFoundError,
    IntercompanyNotFlaggedError,
    InvalidCounterpartyError,
    LedgerEntryNotFoundError,
)
from consol_modules.intercompany import IntercompanyTransaction


@pytest.fixture
def pair(create_entity, create_entry):
    create_entity("Holdco", "H")
    create_entity("Opco", "O")
    create_entry("e1", "H", "1000", "Management fee Q1", date(2024, 1, 15))
    create_entry("e2", "H", "250", "Office supplies", date(2024, 2, 1))
    create_entry("e3", "O", "400", "Loan from Holdco", date(2024, 3, 1))
    create_entry("e4", "O", "75", "Wire TRANSFER to savings", date(2024, 3, 5))
    return ("H", "O")


class TestFlagAndDetect:
    """Tests for flag_as_intercompany and detect_intercompany_transactions."""

    def test_flag_sets_pending(self, classifier, pair):
        """Flagging marks the entry intercompany and pending elimination."""
        txn = classifier.flag_as_intercompany("e1", "O")

        assert txn.id == "e1"
        assert txn.from_entity_name == "Holdco"
        assert txn.to_entity_id == "O"
        assert txn.to_entity_name == "Opco"
        assert txn.amount == Decimal("1000")
        assert txn.status == EliminationStatus.PENDING_ELIMINATION

    def test_detect_lists_only_flagged(self, classifier, pair):
        """Unflagged entries are not intercompany transactions."""
        classifier.flag_as_intercompany("e1", "O")
        classifier.flag_as_intercompany("e3", "H")

        txns = classifier.detect_intercompany_transactions(["H", "O"])

        assert [t.id for t in txns] == ["e1", "e3"]

    def test_detect_date_filter_inclusive(self, classifier, pair):
        """Both date bounds are inclusive."""
        classifier.flag_as_intercompany("e1", "O")
        classifier.flag_as_intercompany("e3", "H")

        txns = classifier.detect_intercompany_transactions(
            ["H", "O"], start_date=date(2024, 1, 15), end_date=date(2024, 1, 15)
        )

        assert [t.id for t in txns] == ["e1"]

    def test_amount_is_sum_of_absolute_debits(self, classifier, repos, pair):
        """Multi-line entries report the absolute debit total."""
        repos.ledger.add(
            LedgerEntry(
                id="e9",
                entity_id="H",
                entry_date=date(2024, 4, 1),
                description="Allocation",
                lines=(
                    LedgerLine("a1", debit_amount=Decimal("60")),
                    LedgerLine("a2", debit_amount=Decimal("-40")),
                    LedgerLine("a3", credit_amount=Decimal("20")),
                ),
            )
        )

        txn = classifier.flag_as_intercompany("e9", "O")

        assert txn.amount == Decimal("100")

    def test_counterparty_must_differ(self, classifier, pair):
        """An entry cannot be intercompany with its own entity."""
        with pytest.raises(InvalidCounterpartyError):
            classifier.flag_as_intercompany("e1", "H")

    def test_counterparty_must_exist(self, classifier, pair):
        """The counterparty must be a known entity."""
        with pytest.raises(EntityNotFoundError):
            classifier.flag_as_intercompany("e1", "missing")

    def test_unknown_entry(self, classifier, pair):
        """Flagging an unknown entry raises."""
        with pytest.raises(LedgerEntryNotFoundError):
            classifier.flag_as_intercompany("missing", "O")

    def test_detect_unknown_entity(self, classifier, pair):
        """Detection verifies the requested entities."""
        with pytest.raises(EntityNotFoundError):
            classifier.detect_intercompany_transactions(["H", "missing"])


class TestMarkEliminated:
    """Tests for mark_eliminated."""

    def test_transitions_pending(self, classifier, pair):
        """Pending transactions become eliminated."""
        classifier.flag_as_intercompany("e1", "O")

        result = classifier.mark_eliminated(["e1"])

        assert result.eliminated == ("e1",)
        assert result.count == 1
        (txn,) = classifier.detect_intercompany_transactions(["H"])
        assert txn.status == EliminationStatus.ELIMINATED

    def test_already_eliminated_left_alone(self, classifier, pair):
        """A second elimination is reported, not repeated."""
        classifier.flag_as_intercompany("e1", "O")
        classifier.mark_eliminated(["e1"])

        result = classifier.mark_eliminated(["e1"])

        assert result.eliminated == ()
        assert result.already_eliminated == ("e1",)

    def test_validates_all_before_writing(self, classifier, pair):
        """One bad id leaves every entry unchanged."""
        classifier.flag_as_intercompany("e1", "O")

        with pytest.raises(IntercompanyNotFlaggedError):
            classifier.mark_eliminated(["e1", "e2"])

        (txn,) = classifier.detect_intercompany_transactions(["H"])
        assert txn.status == EliminationStatus.PENDING_ELIMINATION

    def test_unknown_id(self, classifier, pair):
        """Unknown ids raise before any write."""
        classifier.flag_as_intercompany("e1", "O")

        with pytest.raises(LedgerEntryNotFoundError):
            classifier.mark_eliminated(["e1", "missing"])

        assert classifier.detect_intercompany_transactions(["H"])[0].is_pending

    def test_reflagging_keeps_eliminated_status(self, classifier, pair):
        """Changing the counterparty does not resurrect an eliminated entry."""
        classifier.flag_as_intercompany("e3", "H")
        classifier.mark_eliminated(["e3"])

        txn = classifier.flag_as_intercompany("e3", "H")

        assert txn.status == EliminationStatus.ELIMINATED


class TestAutoDetect:
    """Tests for auto_detect_intercompany."""

    def test_suggests_matching_descriptions(self, classifier, pair):
        """Descriptions matching a pattern are suggested, case-insensitively."""
        suggestions = classifier.auto_detect_intercompany(["H", "O"])

        by_id = {s.entry_id: s for s in suggestions}
        assert set(by_id) == {"e1", "e3", "e4"}
        assert by_id["e1"].matched_pattern == "management fee"
        assert by_id["e3"].matched_pattern == "loan from"
        assert by_id["e4"].matched_pattern == "transfer"
        assert all(s.suggested for s in suggestions)

    def test_flagged_entries_not_suggested(self, classifier, pair):
        """Entries already flagged are skipped."""
        classifier.flag_as_intercompany("e1", "O")

        suggestions = classifier.auto_detect_intercompany(["H"])

        assert suggestions == []

    def test_suggestions_do_not_flag(self, classifier, pair):
        """Suggestions never change classification."""
        classifier.auto_detect_intercompany(["H", "O"])

        assert classifier.detect_intercompany_transactions(["H", "O"]) == []


class TestEliminationEntries:
    """Tests for build_elimination_entries."""

    def _txn(self, txn_id: str, amount: str, status=EliminationStatus.PENDING_ELIMINATION):
        return IntercompanyTransaction(
            id=txn_id,
            from_entity_id="H",
            from_entity_name="Holdco",
            to_entity_id="O",
            to_entity_name="Opco",
            amount=Decimal(amount),
            description="Management fee",
            transaction_date=date(2024, 1, 31),
            status=status,
        )

    def test_one_entry_per_pending_transaction(self, classifier):
        """Eliminated transactions produce no entry."""
        batch = classifier.build_elimination_entries([
            self._txn("t1", "1000"),
            self._txn("t2", "250.50"),
            self._txn("t3", "99", EliminationStatus.ELIMINATED),
        ])

        assert batch.count == 2
        assert batch.total_amount == Decimal("1250.50")
        assert [e.transaction_id for e in batch.entries] == ["t1", "t2"]

    def test_entries_net_to_zero(self, classifier):
        """Every entry debits and credits the same amount."""
        batch = classifier.build_elimination_entries([self._txn("t1", "1000")])

        (entry,) = batch.entries
        assert entry.nets_to_zero
        assert entry.net_amount == Decimal("0")
        assert entry.debit_account == "Intercompany Payable (elimination)"
        assert entry.credit_account == "Intercompany Receivable (elimination)"

    def test_empty(self, classifier):
        """No transactions, empty batch."""
        batch = classifier.build_elimination_entries([])

        assert batch.count == 0
        assert batch.total_amount == Decimal("0")
