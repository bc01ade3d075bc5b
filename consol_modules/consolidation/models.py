"""
Consolidation Domain Models (``consol_modules.consolidation.models``).

Responsibility
--------------
Frozen result objects for group consolidation: the flattened group, the
consolidated trial balance with its per-entity contribution breakdown, and
the summary projected from it.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Monetary fields and percentages are ``Decimal``.
* ``pending_eliminations`` is reported beside the totals; it is never
  subtracted from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from consol_kernel.domain.entities import AccountType, EntityPurpose
from consol_kernel.domain.warnings import ConsolidationWarning
from consol_modules.intercompany.models import IntercompanyTransaction


@dataclass(frozen=True)
class GroupMember:
    """One entity of a consolidation group, summed across every path to it."""

    entity_id: str
    entity_name: str | None
    entity_purpose: EntityPurpose | None
    project_type: str | None
    direct_ownership: Decimal
    effective_ownership: Decimal
    depth: int
    path_count: int = 1


@dataclass(frozen=True)
class ConsolidationGroup:
    root_entity_id: str
    members: tuple[GroupMember, ...]
    truncated: bool = False
    warnings: tuple[ConsolidationWarning, ...] = ()

    @property
    def entity_ids(self) -> list[str]:
        return [m.entity_id for m in self.members]

    def member(self, entity_id: str) -> GroupMember | None:
        for m in self.members:
            if m.entity_id == entity_id:
                return m
        return None


@dataclass(frozen=True)
class EntityContribution:
    """How much one entity's account added to a consolidated line."""

    entity_id: str
    entity_name: str | None
    account_id: str
    original_balance: Decimal
    ownership_percentage: Decimal
    adjusted_balance: Decimal


@dataclass(frozen=True)
class ConsolidatedAccount:
    """
    All group accounts sharing one account number.

    Name, type and header flag come from the first contributing account;
    ``consolidated_balance`` is the sum of the adjusted contributions.
    """

    account_number: str
    account_name: str
    account_type: AccountType
    is_header: bool
    consolidated_balance: Decimal
    contributions: tuple[EntityContribution, ...] = ()


@dataclass(frozen=True)
class ConsolidatedTotals:
    total_debits: Decimal = Decimal("0")
    total_credits: Decimal = Decimal("0")
    pending_eliminations: Decimal = Decimal("0")

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


@dataclass(frozen=True)
class ConsolidatedTrialBalance:
    """
    Ownership-weighted trial balance of a group.

    ``entity_count`` counts the entities whose ledgers were included;
    ``excluded_entities`` lists the ones skipped, each also described by a
    ``PARTIAL_CONSOLIDATION`` warning.
    """

    root_entity_id: str
    group: ConsolidationGroup
    accounts_by_type: dict[str, tuple[ConsolidatedAccount, ...]] = field(default_factory=dict)
    totals: ConsolidatedTotals = field(default_factory=ConsolidatedTotals)
    eliminations: tuple[IntercompanyTransaction, ...] = ()
    entity_count: int = 0
    warnings: tuple[ConsolidationWarning, ...] = ()
    excluded_entities: tuple[str, ...] = ()

    @property
    def accounts(self) -> list[ConsolidatedAccount]:
        return [acct for section in self.accounts_by_type.values() for acct in section]

    @property
    def is_partial(self) -> bool:
        return bool(self.excluded_entities)


@dataclass(frozen=True)
class ConsolidatedSummary:
    root_entity_id: str
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    net_worth: Decimal
    entity_count: int
    pending_eliminations: Decimal
    warnings: tuple[ConsolidationWarning, ...] = ()
