"""
Module: consol_kernel.repositories.base
Responsibility: Abstract collaborator contracts through which the engine
    reads and writes entities, ownership relationships, accounts, journal
    entries and duplicate alerts.
Architecture position: Kernel > Repositories.  May import from domain/ and
    exceptions.  MUST NOT import SQLAlchemy; concrete implementations live in
    memory.py and sql.py.

Invariants enforced:
    - Repositories speak domain value objects, never ORM rows.
    - ``get`` raises the matching NotFoundError subclass for an unknown id.
    - Relationship listings are ordered by effective_date descending (undated
      last), then id; account listings by account_number; alert listings by
      created_at descending, then id; ledger queries by entry_date, then id.
    - ``ownership_write_lock(child_id)`` serializes every check-then-write on
      one child's ownership so the 100% ceiling cannot be raced.
    - Accounts with template lineage cannot be hard-deleted.

Failure modes:
    - NotFoundError subclasses for unknown ids.
    - DataAccessError when the backing store fails.
    - SystemTemplateImmutableError from AccountRepository.delete(hard=True).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import replace
from datetime import date
from typing import Iterable

from consol_kernel.domain.alerts import AlertStatus, DuplicateAlert
from consol_kernel.domain.entities import (
    Account,
    AccountType,
    Entity,
    LedgerEntry,
    OwnershipRelationship,
)
from consol_kernel.exceptions import SystemTemplateImmutableError
from consol_kernel.logging_config import get_logger

logger = get_logger("repositories")


def relationship_sort_key(rel: OwnershipRelationship) -> tuple:
    """Most recent effective date first, undated last, then id."""
    dated = rel.effective_date is not None
    ordinal = rel.effective_date.toordinal() if dated else 0
    return (not dated, -ordinal, rel.id)


def matches_direction(
    rel: OwnershipRelationship, entity_id: str, as_parent: bool, as_child: bool
) -> bool:
    """Direction filter shared by all OwnershipRepository implementations.

    Neither flag (or both) means either side of the edge.
    """
    if as_parent and not as_child:
        return rel.parent_entity_id == entity_id
    if as_child and not as_parent:
        return rel.child_entity_id == entity_id
    return entity_id in (rel.parent_entity_id, rel.child_entity_id)


class EntityRepository(ABC):
    """
    Read access to legal entities.

    Contract:
        ``get`` returns the entity or raises EntityNotFoundError.
    """

    @abstractmethod
    def get(self, entity_id: str) -> Entity:
        ...

    @abstractmethod
    def exists(self, entity_id: str) -> bool:
        ...

    @abstractmethod
    def list(self) -> list[Entity]:
        ...

    @abstractmethod
    def add(self, entity: Entity) -> Entity:
        ...


class OwnershipRepository(ABC):
    """
    Storage for ownership relationships.

    Contract:
        Writes are raw: validation of the 100% ceiling belongs to the graph
        store, which calls ``add``/``save`` inside ``ownership_write_lock``.

    Guarantees:
        - ``list_by_entity`` honours the direction, type and activity filters.
        - ``ownership_write_lock`` is re-entrant per call site only; callers
          must not nest locks for the same child.
    """

    @abstractmethod
    def get(self, relationship_id: str) -> OwnershipRelationship:
        ...

    @abstractmethod
    def list_by_entity(
        self,
        entity_id: str,
        *,
        as_parent: bool = False,
        as_child: bool = False,
        relationship_type: str | None = None,
        active_only: bool = False,
        as_of: date | None = None,
    ) -> list[OwnershipRelationship]:
        """Relationships touching ``entity_id``.

        ``as_of`` is required when ``active_only`` is set.
        """
        ...

    @abstractmethod
    def add(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        ...

    @abstractmethod
    def save(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        ...

    @abstractmethod
    def delete(self, relationship_id: str) -> None:
        ...

    @abstractmethod
    def ownership_write_lock(self, child_entity_id: str) -> AbstractContextManager[None]:
        """Serialize ownership writes for one child entity."""
        ...


class AccountRepository(ABC):
    """
    Storage for chart-of-accounts rows.

    Contract:
        ``delete`` is a template method: soft delete deactivates; hard delete
        refuses accounts with template lineage, then calls ``_remove``.
    """

    @abstractmethod
    def get(self, account_id: str) -> Account:
        ...

    @abstractmethod
    def list(
        self,
        entity_id: str,
        *,
        active_only: bool = False,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        ...

    @abstractmethod
    def add(self, account: Account) -> Account:
        ...

    @abstractmethod
    def save(self, account: Account) -> Account:
        ...

    @abstractmethod
    def _remove(self, account_id: str) -> None:
        ...

    def delete(self, account_id: str, hard: bool = False) -> Account:
        """Deactivate (default) or permanently remove an account.

        Raises:
            AccountNotFoundError: unknown id.
            SystemTemplateImmutableError: hard delete of a template-derived
                or system account.
        """
        account = self.get(account_id)
        if not hard:
            deactivated = replace(account, is_active=False)
            self.save(deactivated)
            return deactivated
        if account.has_template_lineage:
            logger.warning(
                "account_hard_delete_blocked",
                extra={
                    "account_id": account_id,
                    "template_account_id": account.template_account_id,
                    "is_system": account.is_system,
                },
            )
            raise SystemTemplateImmutableError(account_id, account.template_account_id)
        self._remove(account_id)
        return account


class LedgerEntryRepository(ABC):
    """Read access to journal entries plus their intercompany classification."""

    @abstractmethod
    def get(self, entry_id: str) -> LedgerEntry:
        ...

    @abstractmethod
    def query(
        self,
        entity_ids: Iterable[str],
        *,
        is_intercompany: bool | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[LedgerEntry]:
        """Entries for the given entities; date bounds are inclusive."""
        ...

    @abstractmethod
    def add(self, entry: LedgerEntry) -> LedgerEntry:
        ...

    @abstractmethod
    def save(self, entry: LedgerEntry) -> LedgerEntry:
        """Persist classification fields (flag, counterparty, status)."""
        ...


class DuplicateAlertRepository(ABC):
    """Storage for duplicate-account alerts."""

    @abstractmethod
    def get(self, alert_id: str) -> DuplicateAlert:
        ...

    @abstractmethod
    def list(
        self,
        entity_id: str | None = None,
        status: AlertStatus | None = None,
    ) -> list[DuplicateAlert]:
        """Alerts where ``entity_id`` is on either side, newest first."""
        ...

    @abstractmethod
    def find_by_account_pair(self, account_a: str, account_b: str) -> DuplicateAlert | None:
        """Existing alert for the unordered pair, if any."""
        ...

    @abstractmethod
    def add(self, alert: DuplicateAlert) -> DuplicateAlert:
        ...

    @abstractmethod
    def save(self, alert: DuplicateAlert) -> DuplicateAlert:
        ...
