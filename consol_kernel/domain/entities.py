"""
Consolidation Domain Value Objects (``consol_kernel.domain.entities``).

Responsibility
--------------
Frozen dataclass value objects for the nouns the consolidation engine reads
from its collaborators: legal entities, ownership relationships between them,
general-ledger accounts, and journal entries.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Produced by
repositories, consumed by engines and module services.

Invariants enforced
-------------------
* All value objects are ``frozen=True``.
* Balances, amounts and ownership percentages are ``Decimal`` -- NEVER
  ``float``.
* An ownership relationship never links an entity to itself and carries a
  percentage in ``(0, 100]``; construction fails otherwise.

Failure modes
-------------
* ``SelfOwnershipError`` / ``InvalidOwnershipPercentageError`` on
  construction of an invalid ``OwnershipRelationship``.
* ``ValueError`` on construction with an unknown enum value.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from consol_kernel.exceptions import (
    InvalidOwnershipPercentageError,
    SelfOwnershipError,
)

HUNDRED = Decimal("100")
ZERO = Decimal("0")

OWNERSHIP = "ownership"


class EntityPurpose(str, Enum):
    """Role a legal entity plays in the portfolio."""

    HOLDING_COMPANY = "holding_company"
    OPERATING_COMPANY = "operating_company"
    SPE = "spe"


class AccountType(str, Enum):
    """Chart-of-accounts classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    COGS = "cogs"
    EXPENSE = "expense"
    OTHER_INCOME = "other_income"
    OTHER_EXPENSE = "other_expense"


class NormalBalance(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class EliminationStatus(str, Enum):
    """Lifecycle of an intercompany entry with respect to consolidation."""

    PENDING_ELIMINATION = "pending_elimination"
    ELIMINATED = "eliminated"


_DEBIT_NORMAL_TYPES = frozenset({
    AccountType.ASSET,
    AccountType.COGS,
    AccountType.EXPENSE,
    AccountType.OTHER_EXPENSE,
})


def default_normal_balance(account_type: AccountType) -> NormalBalance:
    """Normal balance side implied by the account type."""
    if account_type in _DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


@dataclass(frozen=True)
class Entity:
    """A legal entity (holding company, operating company or SPE)."""

    id: str
    name: str
    entity_purpose: EntityPurpose = EntityPurpose.OPERATING_COMPANY
    project_type: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.entity_purpose, EntityPurpose):
            object.__setattr__(self, "entity_purpose", EntityPurpose(self.entity_purpose))


@dataclass(frozen=True)
class OwnershipRelationship:
    """
    A directed edge: ``parent_entity_id`` owns ``ownership_percentage`` of
    ``child_entity_id``.

    Only relationships whose ``relationship_type`` is ``"ownership"`` take part
    in consolidation and count against the child's 100% ceiling; other types
    (management, guarantee, ...) only link entities for related-entity scans.
    """

    id: str
    parent_entity_id: str
    child_entity_id: str
    ownership_percentage: Decimal
    relationship_type: str = OWNERSHIP
    effective_date: date | None = None
    end_date: date | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.parent_entity_id == self.child_entity_id:
            raise SelfOwnershipError(self.parent_entity_id)
        pct = self.ownership_percentage
        if not isinstance(pct, Decimal):
            pct = Decimal(str(pct))
            object.__setattr__(self, "ownership_percentage", pct)
        if not pct.is_finite() or pct <= ZERO or pct > HUNDRED:
            raise InvalidOwnershipPercentageError(pct)

    @property
    def is_ownership(self) -> bool:
        return self.relationship_type == OWNERSHIP

    def is_active_on(self, as_of: date) -> bool:
        """Active when it has no end date or ends on/after ``as_of``."""
        return self.end_date is None or self.end_date >= as_of


@dataclass(frozen=True)
class Account:
    """A general-ledger account in one entity's chart of accounts."""

    id: str
    entity_id: str
    account_number: str
    account_name: str
    account_type: AccountType
    is_header: bool = False
    current_balance: Decimal = ZERO
    is_active: bool = True
    normal_balance: NormalBalance | None = None
    template_account_id: str | None = None
    is_system: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.account_type, AccountType):
            object.__setattr__(self, "account_type", AccountType(self.account_type))
        if self.normal_balance is None:
            object.__setattr__(
                self, "normal_balance", default_normal_balance(self.account_type)
            )
        elif not isinstance(self.normal_balance, NormalBalance):
            object.__setattr__(self, "normal_balance", NormalBalance(self.normal_balance))

    @property
    def has_template_lineage(self) -> bool:
        return self.is_system or self.template_account_id is not None


@dataclass(frozen=True)
class LedgerLine:
    """One line of a journal entry."""

    account_id: str
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO


@dataclass(frozen=True)
class LedgerEntry:
    """
    A journal entry as read from an entity's ledger.

    ``debit_total`` sums absolute debit amounts across lines; it is the
    amount used when the entry is treated as an intercompany transaction.
    """

    id: str
    entity_id: str
    entry_date: date
    description: str = ""
    lines: tuple[LedgerLine, ...] = field(default_factory=tuple)
    is_intercompany: bool = False
    counterparty_entity_id: str | None = None
    elimination_status: EliminationStatus | None = None

    @property
    def debit_total(self) -> Decimal:
        return sum((abs(line.debit_amount) for line in self.lines), ZERO)
