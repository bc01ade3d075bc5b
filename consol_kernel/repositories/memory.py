"""
Module: consol_kernel.repositories.memory
Responsibility: In-memory implementations of the collaborator contracts.
    Used by tests, demos and any caller that assembles a portfolio in
    process.
Architecture position: Kernel > Repositories.  Implements base.py.

Invariants enforced:
    - Every repository instance owns its own dictionaries; nothing is shared
      at module level.  Build one ``InMemoryRepositories`` per portfolio and
      inject it.
    - Ownership writes for one child are serialized by a per-child
      ``threading.Lock``.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
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
from consol_kernel.exceptions import (
    AccountNotFoundError,
    AlertNotFoundError,
    EntityNotFoundError,
    LedgerEntryNotFoundError,
    RelationshipNotFoundError,
)
from consol_kernel.repositories.base import (
    AccountRepository,
    DuplicateAlertRepository,
    EntityRepository,
    LedgerEntryRepository,
    OwnershipRepository,
    matches_direction,
    relationship_sort_key,
)


class InMemoryEntityRepository(EntityRepository):

    def __init__(self) -> None:
        self._entities: dict[str, Entity] = {}

    def get(self, entity_id: str) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise EntityNotFoundError(entity_id) from None

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def list(self) -> list[Entity]:
        return sorted(self._entities.values(), key=lambda e: e.name)

    def add(self, entity: Entity) -> Entity:
        self._entities[entity.id] = entity
        return entity


class InMemoryOwnershipRepository(OwnershipRepository):

    def __init__(self) -> None:
        self._relationships: dict[str, OwnershipRelationship] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get(self, relationship_id: str) -> OwnershipRelationship:
        try:
            return self._relationships[relationship_id]
        except KeyError:
            raise RelationshipNotFoundError(relationship_id) from None

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
        if active_only and as_of is None:
            raise ValueError("as_of is required when active_only is set")
        result = [
            rel
            for rel in self._relationships.values()
            if matches_direction(rel, entity_id, as_parent, as_child)
            and (relationship_type is None or rel.relationship_type == relationship_type)
            and (not active_only or rel.is_active_on(as_of))
        ]
        return sorted(result, key=relationship_sort_key)

    def add(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        self._relationships[relationship.id] = relationship
        return relationship

    def save(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        if relationship.id not in self._relationships:
            raise RelationshipNotFoundError(relationship.id)
        self._relationships[relationship.id] = relationship
        return relationship

    def delete(self, relationship_id: str) -> None:
        if self._relationships.pop(relationship_id, None) is None:
            raise RelationshipNotFoundError(relationship_id)

    @contextmanager
    def ownership_write_lock(self, child_entity_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(child_entity_id, threading.Lock())
        with lock:
            yield


class InMemoryAccountRepository(AccountRepository):

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}

    def get(self, account_id: str) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError:
            raise AccountNotFoundError(account_id) from None

    def list(
        self,
        entity_id: str,
        *,
        active_only: bool = False,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        result = [
            acct
            for acct in self._accounts.values()
            if acct.entity_id == entity_id
            and (not active_only or acct.is_active)
            and (account_type is None or acct.account_type == account_type)
        ]
        return sorted(result, key=lambda a: a.account_number)

    def add(self, account: Account) -> Account:
        self._accounts[account.id] = account
        return account

    def save(self, account: Account) -> Account:
        if account.id not in self._accounts:
            raise AccountNotFoundError(account.id)
        self._accounts[account.id] = account
        return account

    def _remove(self, account_id: str) -> None:
        del self._accounts[account_id]


class InMemoryLedgerEntryRepository(LedgerEntryRepository):

    def __init__(self) -> None:
        self._entries: dict[str, LedgerEntry] = {}

    def get(self, entry_id: str) -> LedgerEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise LedgerEntryNotFoundError(entry_id) from None

    def query(
        self,
        entity_ids: Iterable[str],
        *,
        is_intercompany: bool | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[LedgerEntry]:
        wanted = set(entity_ids)
        result = [
            entry
            for entry in self._entries.values()
            if entry.entity_id in wanted
            and (is_intercompany is None or entry.is_intercompany == is_intercompany)
            and (start_date is None or entry.entry_date >= start_date)
            and (end_date is None or entry.entry_date <= end_date)
        ]
        return sorted(result, key=lambda e: (e.entry_date, e.id))

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        self._entries[entry.id] = entry
        return entry

    def save(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id not in self._entries:
            raise LedgerEntryNotFoundError(entry.id)
        self._entries[entry.id] = entry
        return entry


class InMemoryDuplicateAlertRepository(DuplicateAlertRepository):

    def __init__(self) -> None:
        self._alerts: dict[str, DuplicateAlert] = {}

    def get(self, alert_id: str) -> DuplicateAlert:
        try:
            return self._alerts[alert_id]
        except KeyError:
            raise AlertNotFoundError(alert_id) from None

    def list(
        self,
        entity_id: str | None = None,
        status: AlertStatus | None = None,
    ) -> list[DuplicateAlert]:
        result = [
            alert
            for alert in self._alerts.values()
            if (entity_id is None or entity_id in (alert.entity_id, alert.duplicate_entity_id))
            and (status is None or alert.status == status)
        ]
        result.sort(key=lambda a: a.id)
        # Stable: ties keep id order.
        result.sort(
            key=lambda a: a.created_at.timestamp() if a.created_at else float("-inf"),
            reverse=True,
        )
        return result

    def find_by_account_pair(self, account_a: str, account_b: str) -> DuplicateAlert | None:
        for alert in self._alerts.values():
            if alert.covers(account_a, account_b):
                return alert
        return None

    def add(self, alert: DuplicateAlert) -> DuplicateAlert:
        self._alerts[alert.id] = alert
        return alert

    def save(self, alert: DuplicateAlert) -> DuplicateAlert:
        if alert.id not in self._alerts:
            raise AlertNotFoundError(alert.id)
        self._alerts[alert.id] = alert
        return alert


@dataclass
class InMemoryRepositories:
    """One portfolio's worth of in-memory collaborators."""

    entities: InMemoryEntityRepository = field(default_factory=InMemoryEntityRepository)
    ownership: InMemoryOwnershipRepository = field(default_factory=InMemoryOwnershipRepository)
    accounts: InMemoryAccountRepository = field(default_factory=InMemoryAccountRepository)
    ledger: InMemoryLedgerEntryRepository = field(default_factory=InMemoryLedgerEntryRepository)
    alerts: InMemoryDuplicateAlertRepository = field(
        default_factory=InMemoryDuplicateAlertRepository
    )
