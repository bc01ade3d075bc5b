"""
Module: consol_kernel.repositories.sql
Responsibility: SQLAlchemy 2.0 implementations of the collaborator contracts
    over a caller-owned Session.
Architecture position: Kernel > Repositories.  May import from db/, models/,
    domain/ and exceptions.

Invariants enforced:
    - Session ownership: repositories never create sessions and never commit.
      Writes are flushed; the caller's session_scope() commits or rolls back.
    - DTO return convention: every method returns domain value objects, never
      ORM rows.
    - Ownership writes take SELECT ... FOR UPDATE on the child entity row
      (a no-op on SQLite, which serializes writers at the database level).

Failure modes:
    - NotFoundError subclasses for unknown ids.
    - DataAccessError wrapping any SQLAlchemyError raised by the driver.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Iterable

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

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
    DataAccessError,
    EntityNotFoundError,
    LedgerEntryNotFoundError,
    RelationshipNotFoundError,
)
from consol_kernel.logging_config import get_logger
from consol_kernel.models import (
    AccountModel,
    DuplicateAlertModel,
    EntityModel,
    LedgerEntryModel,
    OwnershipRelationshipModel,
)
from consol_kernel.repositories.base import (
    AccountRepository,
    DuplicateAlertRepository,
    EntityRepository,
    LedgerEntryRepository,
    OwnershipRepository,
)

logger = get_logger("repositories.sql")


@contextmanager
def _data_access(operation: str) -> Iterator[None]:
    """Translate driver failures into DataAccessError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "data_access_failed",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        raise DataAccessError(operation, str(exc)) from exc


class _SqlRepository:
    """
    Shared session holder.

    Contract:
        Accepts a Session from the caller and never commits it.
    """

    def __init__(self, session: Session):
        self.session = session


class SqlEntityRepository(_SqlRepository, EntityRepository):

    def _model(self, entity_id: str) -> EntityModel:
        model = self.session.get(EntityModel, entity_id)
        if model is None:
            raise EntityNotFoundError(entity_id)
        return model

    def get(self, entity_id: str) -> Entity:
        with _data_access("entity.get"):
            return self._model(entity_id).to_dto()

    def exists(self, entity_id: str) -> bool:
        with _data_access("entity.exists"):
            return self.session.get(EntityModel, entity_id) is not None

    def list(self) -> list[Entity]:
        with _data_access("entity.list"):
            rows = self.session.scalars(select(EntityModel).order_by(EntityModel.name))
            return [row.to_dto() for row in rows]

    def add(self, entity: Entity) -> Entity:
        with _data_access("entity.add"):
            self.session.add(EntityModel.from_dto(entity))
            self.session.flush()
        return entity


class SqlOwnershipRepository(_SqlRepository, OwnershipRepository):

    def _model(self, relationship_id: str) -> OwnershipRelationshipModel:
        model = self.session.get(OwnershipRelationshipModel, relationship_id)
        if model is None:
            raise RelationshipNotFoundError(relationship_id)
        return model

    def get(self, relationship_id: str) -> OwnershipRelationship:
        with _data_access("ownership.get"):
            return self._model(relationship_id).to_dto()

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

        m = OwnershipRelationshipModel
        if as_parent and not as_child:
            direction = m.parent_entity_id == entity_id
        elif as_child and not as_parent:
            direction = m.child_entity_id == entity_id
        else:
            direction = or_(m.parent_entity_id == entity_id, m.child_entity_id == entity_id)

        stmt = select(m).where(direction)
        if relationship_type is not None:
            stmt = stmt.where(m.relationship_type == relationship_type)
        if active_only:
            stmt = stmt.where(or_(m.end_date.is_(None), m.end_date >= as_of))
        stmt = stmt.order_by(m.effective_date.desc().nulls_last(), m.id)

        with _data_access("ownership.list_by_entity"):
            return [row.to_dto() for row in self.session.scalars(stmt)]

    def add(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        with _data_access("ownership.add"):
            self.session.add(OwnershipRelationshipModel.from_dto(relationship))
            self.session.flush()
        return relationship

    def save(self, relationship: OwnershipRelationship) -> OwnershipRelationship:
        with _data_access("ownership.save"):
            self._model(relationship.id).update_from_dto(relationship)
            self.session.flush()
        return relationship

    def delete(self, relationship_id: str) -> None:
        with _data_access("ownership.delete"):
            self.session.delete(self._model(relationship_id))
            self.session.flush()

    @contextmanager
    def ownership_write_lock(self, child_entity_id: str) -> Iterator[None]:
        # Row lock is held until the caller's transaction ends.
        with _data_access("ownership.lock"):
            self.session.execute(
                select(EntityModel.id)
                .where(EntityModel.id == child_entity_id)
                .with_for_update()
            )
        yield


class SqlAccountRepository(_SqlRepository, AccountRepository):

    def _model(self, account_id: str) -> AccountModel:
        model = self.session.get(AccountModel, account_id)
        if model is None:
            raise AccountNotFoundError(account_id)
        return model

    def get(self, account_id: str) -> Account:
        with _data_access("account.get"):
            return self._model(account_id).to_dto()

    def list(
        self,
        entity_id: str,
        *,
        active_only: bool = False,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        stmt = select(AccountModel).where(AccountModel.entity_id == entity_id)
        if active_only:
            stmt = stmt.where(AccountModel.is_active.is_(True))
        if account_type is not None:
            stmt = stmt.where(AccountModel.account_type == account_type.value)
        stmt = stmt.order_by(AccountModel.account_number)

        with _data_access("account.list"):
            return [row.to_dto() for row in self.session.scalars(stmt)]

    def add(self, account: Account) -> Account:
        with _data_access("account.add"):
            self.session.add(AccountModel.from_dto(account))
            self.session.flush()
        return account

    def save(self, account: Account) -> Account:
        with _data_access("account.save"):
            self._model(account.id).update_from_dto(account)
            self.session.flush()
        return account

    def _remove(self, account_id: str) -> None:
        with _data_access("account.delete"):
            self.session.delete(self._model(account_id))
            self.session.flush()


class SqlLedgerEntryRepository(_SqlRepository, LedgerEntryRepository):

    def _model(self, entry_id: str) -> LedgerEntryModel:
        model = self.session.get(LedgerEntryModel, entry_id)
        if model is None:
            raise LedgerEntryNotFoundError(entry_id)
        return model

    def get(self, entry_id: str) -> LedgerEntry:
        with _data_access("ledger.get"):
            return self._model(entry_id).to_dto()

    def query(
        self,
        entity_ids: Iterable[str],
        *,
        is_intercompany: bool | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[LedgerEntry]:
        ids = list(entity_ids)
        if not ids:
            return []
        m = LedgerEntryModel
        stmt = select(m).where(m.entity_id.in_(ids))
        if is_intercompany is not None:
            stmt = stmt.where(m.is_intercompany.is_(is_intercompany))
        if start_date is not None:
            stmt = stmt.where(m.entry_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(m.entry_date <= end_date)
        stmt = stmt.order_by(m.entry_date, m.id)

        with _data_access("ledger.query"):
            return [row.to_dto() for row in self.session.scalars(stmt)]

    def add(self, entry: LedgerEntry) -> LedgerEntry:
        with _data_access("ledger.add"):
            self.session.add(LedgerEntryModel.from_dto(entry))
            self.session.flush()
        return entry

    def save(self, entry: LedgerEntry) -> LedgerEntry:
        with _data_access("ledger.save"):
            self._model(entry.id).update_classification(entry)
            self.session.flush()
        return entry


class SqlDuplicateAlertRepository(_SqlRepository, DuplicateAlertRepository):

    def _model(self, alert_id: str) -> DuplicateAlertModel:
        model = self.session.get(DuplicateAlertModel, alert_id)
        if model is None:
            raise AlertNotFoundError(alert_id)
        return model

    def get(self, alert_id: str) -> DuplicateAlert:
        with _data_access("alert.get"):
            return self._model(alert_id).to_dto()

    def list(
        self,
        entity_id: str | None = None,
        status: AlertStatus | None = None,
    ) -> list[DuplicateAlert]:
        m = DuplicateAlertModel
        stmt = select(m)
        if entity_id is not None:
            stmt = stmt.where(or_(m.entity_id == entity_id, m.duplicate_entity_id == entity_id))
        if status is not None:
            stmt = stmt.where(m.status == status.value)
        stmt = stmt.order_by(m.created_at.desc(), m.id)

        with _data_access("alert.list"):
            return [row.to_dto() for row in self.session.scalars(stmt)]

    def find_by_account_pair(self, account_a: str, account_b: str) -> DuplicateAlert | None:
        m = DuplicateAlertModel
        stmt = select(m).where(
            or_(
                and_(m.account_id == account_a, m.duplicate_account_id == account_b),
                and_(m.account_id == account_b, m.duplicate_account_id == account_a),
            )
        ).limit(1)
        with _data_access("alert.find_by_account_pair"):
            row = self.session.scalars(stmt).first()
            return row.to_dto() if row is not None else None

    def add(self, alert: DuplicateAlert) -> DuplicateAlert:
        with _data_access("alert.add"):
            model = DuplicateAlertModel.from_dto(alert)
            self.session.add(model)
            self.session.flush()
        return alert

    def save(self, alert: DuplicateAlert) -> DuplicateAlert:
        with _data_access("alert.save"):
            self._model(alert.id).update_review(alert)
            self.session.flush()
        return alert


class SqlRepositories:
    """All five SQL collaborators over one caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
        self.entities = SqlEntityRepository(session)
        self.ownership = SqlOwnershipRepository(session)
        self.accounts = SqlAccountRepository(session)
        self.ledger = SqlLedgerEntryRepository(session)
        self.alerts = SqlDuplicateAlertRepository(session)
