"""
Intercompany Transaction Classifier (``consol_modules.intercompany.service``).

Responsibility
--------------
Track journal entries that cross entity boundaries: list flagged entries
as intercompany transactions, flag entries manually, suggest candidates
from description heuristics, move entries to ``eliminated`` on request,
and build the elimination entries consolidation reports alongside its
totals.

Architecture position
---------------------
**Modules layer** -- independent.  Reads and classifies through the
injected ``LedgerEntryRepository``; patterns and elimination account labels
come from ``IntercompanyConfig``.

Invariants enforced
-------------------
* Status moves from ``pending_elimination`` to ``eliminated`` only through
  ``mark_eliminated``; detection never changes status.
* A counterparty must exist and differ from the entry's own entity.
* Every elimination entry debits and credits the same amount.

Failure modes
-------------
* ``LedgerEntryNotFoundError`` -- unknown entry id.
* ``EntityNotFoundError`` -- unknown entity or counterparty.
* ``InvalidCounterpartyError`` -- counterparty equals the entry's entity.
* ``IntercompanyNotFlaggedError`` -- elimination of an unflagged entry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date
from decimal import Decimal

from consol_config.schema import IntercompanyConfig
from consol_kernel.domain.entities import EliminationStatus, LedgerEntry
from consol_kernel.exceptions import (
    IntercompanyNotFlaggedError,
    InvalidCounterpartyError,
)
from consol_kernel.logging_config import get_logger
from consol_kernel.repositories.base import EntityRepository, LedgerEntryRepository
from consol_modules.intercompany.models import (
    EliminationBatch,
    EliminationEntry,
    EliminationResult,
    IntercompanySuggestion,
    IntercompanyTransaction,
)

logger = get_logger("modules.intercompany.service")


class IntercompanyClassifier:
    """
    Flags, detects and eliminates intercompany journal entries.

    Contract
    --------
    * Entity-scoped reads verify every requested entity exists.
    * ``mark_eliminated`` validates the whole id list before changing
      anything.
    """

    def __init__(
        self,
        entities: EntityRepository,
        ledger: LedgerEntryRepository,
        config: IntercompanyConfig | None = None,
    ):
        self._entities = entities
        self._ledger = ledger
        self._config = config or IntercompanyConfig()

    def detect_intercompany_transactions(
        self,
        entity_ids: Iterable[str],
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[IntercompanyTransaction]:
        """Flagged entries of the given entities, with inclusive date bounds."""
        ids = self._verify_entities(entity_ids)
        entries = self._ledger.query(
            ids,
            is_intercompany=True,
            start_date=start_date,
            end_date=end_date,
        )
        names = self._names(ids, entries)
        transactions = [self._to_transaction(entry, names) for entry in entries]
        logger.debug(
            "intercompany_transactions_detected",
            extra={
                "entity_ids": ids,
                "start_date": start_date,
                "end_date": end_date,
                "transaction_count": len(transactions),
            },
        )
        return transactions

    def flag_as_intercompany(
        self, entry_id: str, counterparty_entity_id: str
    ) -> IntercompanyTransaction:
        entry = self._ledger.get(entry_id)
        counterparty = self._entities.get(counterparty_entity_id)
        if counterparty.id == entry.entity_id:
            raise InvalidCounterpartyError(entry_id, counterparty_entity_id)

        flagged = replace(
            entry,
            is_intercompany=True,
            counterparty_entity_id=counterparty.id,
            elimination_status=(
                entry.elimination_status or EliminationStatus.PENDING_ELIMINATION
            ),
        )
        self._ledger.save(flagged)
        logger.info(
            "ledger_entry_flagged_intercompany",
            extra={
                "entry_id": entry_id,
                "entity_id": entry.entity_id,
                "counterparty_entity_id": counterparty.id,
                "amount": str(flagged.debit_total),
            },
        )
        return self._to_transaction(
            flagged, self._names([entry.entity_id], [flagged])
        )

    def mark_eliminated(self, transaction_ids: Iterable[str]) -> EliminationResult:
        """
        Move pending transactions to ``eliminated``.

        All ids are checked before any write: an unknown id raises
        ``LedgerEntryNotFoundError`` and an unflagged entry raises
        ``IntercompanyNotFlaggedError``, leaving every entry unchanged.
        Entries already eliminated are reported and left alone.
        """
        entries: list[LedgerEntry] = []
        seen: set[str] = set()
        for entry_id in transaction_ids:
            if entry_id in seen:
                continue
            seen.add(entry_id)
            entry = self._ledger.get(entry_id)
            if not entry.is_intercompany:
                raise IntercompanyNotFlaggedError(entry_id)
            entries.append(entry)

        eliminated = []
        already = []
        for entry in entries:
            if entry.elimination_status == EliminationStatus.ELIMINATED:
                already.append(entry.id)
                continue
            self._ledger.save(
                replace(entry, elimination_status=EliminationStatus.ELIMINATED)
            )
            eliminated.append(entry.id)

        logger.info(
            "intercompany_transactions_eliminated",
            extra={"eliminated": eliminated, "already_eliminated": already},
        )
        return EliminationResult(
            eliminated=tuple(eliminated), already_eliminated=tuple(already)
        )

    def auto_detect_intercompany(
        self, entity_ids: Iterable[str]
    ) -> list[IntercompanySuggestion]:
        """Unflagged entries whose description matches a configured pattern."""
        ids = self._verify_entities(entity_ids)
        suggestions = []
        for entry in self._ledger.query(ids, is_intercompany=False):
            pattern = self._config.matching_pattern(entry.description)
            if pattern is None:
                continue
            suggestions.append(
                IntercompanySuggestion(
                    entry_id=entry.id,
                    entity_id=entry.entity_id,
                    description=entry.description,
                    amount=entry.debit_total,
                    entry_date=entry.entry_date,
                    matched_pattern=pattern,
                )
            )
        logger.info(
            "intercompany_auto_detect_completed",
            extra={"entity_ids": ids, "suggestion_count": len(suggestions)},
        )
        return suggestions

    def build_elimination_entries(
        self, transactions: Iterable[IntercompanyTransaction]
    ) -> EliminationBatch:
        """One net-zero elimination entry per pending transaction."""
        entries = tuple(
            EliminationEntry(
                transaction_id=txn.id,
                entry_date=txn.transaction_date,
                description=f"Eliminate intercompany: {txn.description}",
                from_entity_id=txn.from_entity_id,
                to_entity_id=txn.to_entity_id,
                debit_account=self._config.elimination_debit_account,
                credit_account=self._config.elimination_credit_account,
                debit_amount=txn.amount,
                credit_amount=txn.amount,
            )
            for txn in transactions
            if txn.is_pending
        )
        total = sum((e.debit_amount for e in entries), Decimal("0"))
        return EliminationBatch(entries=entries, total_amount=total, count=len(entries))

    # =========================================================================
    # Internals
    # =========================================================================

    def _verify_entities(self, entity_ids: Iterable[str]) -> list[str]:
        ids = list(dict.fromkeys(entity_ids))
        for eid in ids:
            self._entities.get(eid)
        return ids

    def _names(self, ids: Iterable[str], entries: Iterable[LedgerEntry]) -> dict[str, str]:
        wanted = set(ids)
        wanted.update(
            e.counterparty_entity_id for e in entries if e.counterparty_entity_id
        )
        return {
            eid: self._entities.get(eid).name
            for eid in wanted
            if self._entities.exists(eid)
        }

    def _to_transaction(
        self, entry: LedgerEntry, names: dict[str, str]
    ) -> IntercompanyTransaction:
        counterparty = entry.counterparty_entity_id
        return IntercompanyTransaction(
            id=entry.id,
            from_entity_id=entry.entity_id,
            from_entity_name=names.get(entry.entity_id),
            to_entity_id=counterparty,
            to_entity_name=names.get(counterparty) if counterparty else None,
            amount=entry.debit_total,
            description=entry.description,
            transaction_date=entry.entry_date,
            status=entry.elimination_status or EliminationStatus.PENDING_ELIMINATION,
        )
