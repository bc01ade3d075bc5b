"""
Intercompany Domain Models (``consol_modules.intercompany.models``).

Frozen value objects for intercompany transactions, heuristic detection
suggestions and the elimination entries generated for consolidation.
Amounts are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from consol_kernel.domain.entities import EliminationStatus
from consol_kernel.domain.warnings import ConsolidationWarning


@dataclass(frozen=True)
class IntercompanyTransaction:
    """
    A journal entry flagged as crossing entity boundaries.

    ``id`` is the journal entry id.  ``amount`` is the sum of absolute
    debit amounts over the entry's lines.
    """

    id: str
    from_entity_id: str
    from_entity_name: str | None
    to_entity_id: str | None
    to_entity_name: str | None
    amount: Decimal
    description: str
    transaction_date: date
    status: EliminationStatus = EliminationStatus.PENDING_ELIMINATION

    @property
    def is_pending(self) -> bool:
        return self.status == EliminationStatus.PENDING_ELIMINATION


@dataclass(frozen=True)
class IntercompanySuggestion:
    """An unflagged entry whose description looks intercompany.  Never acted on automatically."""

    entry_id: str
    entity_id: str
    description: str
    amount: Decimal
    entry_date: date
    matched_pattern: str
    suggested: bool = True


@dataclass(frozen=True)
class EliminationEntry:
    """
    Reporting-only adjustment removing one intercompany balance pair.

    One line: debit the intercompany payable (elimination) and credit the
    intercompany receivable (elimination) for the same amount.
    """

    transaction_id: str
    entry_date: date
    description: str
    from_entity_id: str
    to_entity_id: str | None
    debit_account: str
    credit_account: str
    debit_amount: Decimal
    credit_amount: Decimal

    @property
    def net_amount(self) -> Decimal:
        return self.debit_amount - self.credit_amount

    @property
    def nets_to_zero(self) -> bool:
        return self.debit_amount == self.credit_amount


@dataclass(frozen=True)
class EliminationBatch:
    """
    Entries generated for one run.  ``excluded_entities`` lists group members
    that could not be read and were left out, each with a warning.
    """

    entries: tuple[EliminationEntry, ...]
    total_amount: Decimal
    count: int
    warnings: tuple[ConsolidationWarning, ...] = ()
    excluded_entities: tuple[str, ...] = ()


@dataclass(frozen=True)
class EliminationResult:
    """Outcome of ``mark_eliminated``: ids transitioned vs. already eliminated."""

    eliminated: tuple[str, ...] = ()
    already_eliminated: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.eliminated)
