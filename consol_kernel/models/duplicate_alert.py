"""
Module: consol_kernel.models.duplicate_alert
Responsibility: ORM persistence for duplicate-account alerts and their
    review record.
Architecture position: Kernel > Models.

Invariants enforced:
    - confidence_score is a float in [0, 1] (a similarity ratio, not money).
    - The reviewer is stored as kind + id + display fields and rebuilt into
      the ResponsibleParty union on read.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from consol_kernel.db.base import TrackedBase
from consol_kernel.domain.alerts import AlertStatus, DuplicateAlert, MatchType
from consol_kernel.domain.parties import ExternalContact, InternalUser, ResponsibleParty

_USER = "user"
_CONTACT = "contact"


class DuplicateAlertModel(TrackedBase):
    """
    A duplicate-account finding between two related entities.

    Maps to the ``DuplicateAlert`` value object.
    """

    __tablename__ = "duplicate_account_alerts"

    __table_args__ = (
        Index("idx_dup_alert_entity", "entity_id"),
        Index("idx_dup_alert_duplicate_entity", "duplicate_entity_id"),
        Index("idx_dup_alert_accounts", "account_id", "duplicate_account_id"),
        Index("idx_dup_alert_status", "status"),
    )

    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    duplicate_entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    duplicate_account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    match_type: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AlertStatus.PENDING.value,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by_kind: Mapped[str | None] = mapped_column(String(10), nullable=True)
    reviewed_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_by_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def _reviewer(self) -> ResponsibleParty | None:
        if self.reviewed_by_kind == _USER:
            return InternalUser(user_id=self.reviewed_by_id, display_name=self.reviewed_by_name)
        if self.reviewed_by_kind == _CONTACT:
            return ExternalContact(
                contact_id=self.reviewed_by_id,
                display_name=self.reviewed_by_name,
                company=self.reviewed_by_company,
            )
        return None

    def to_dto(self) -> DuplicateAlert:
        return DuplicateAlert(
            id=self.id,
            entity_id=self.entity_id,
            account_id=self.account_id,
            duplicate_entity_id=self.duplicate_entity_id,
            duplicate_account_id=self.duplicate_account_id,
            match_type=MatchType(self.match_type),
            confidence_score=self.confidence_score,
            status=AlertStatus(self.status),
            created_at=self.created_at,
            reviewed_at=self.reviewed_at,
            reviewed_by=self._reviewer(),
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: DuplicateAlert) -> "DuplicateAlertModel":
        model = cls(
            id=dto.id,
            entity_id=dto.entity_id,
            account_id=dto.account_id,
            duplicate_entity_id=dto.duplicate_entity_id,
            duplicate_account_id=dto.duplicate_account_id,
            match_type=dto.match_type.value,
            confidence_score=dto.confidence_score,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        model.update_review(dto)
        return model

    def update_review(self, dto: DuplicateAlert) -> None:
        self.status = dto.status.value
        self.reviewed_at = dto.reviewed_at
        self.notes = dto.notes
        match dto.reviewed_by:
            case InternalUser(user_id=uid, display_name=name):
                self.reviewed_by_kind = _USER
                self.reviewed_by_id = uid
                self.reviewed_by_name = name
                self.reviewed_by_company = None
            case ExternalContact(contact_id=cid, display_name=name, company=company):
                self.reviewed_by_kind = _CONTACT
                self.reviewed_by_id = cid
                self.reviewed_by_name = name
                self.reviewed_by_company = company
            case None:
                self.reviewed_by_kind = None
                self.reviewed_by_id = None
                self.reviewed_by_name = None
                self.reviewed_by_company = None

    def __repr__(self) -> str:
        return (
            f"<DuplicateAlertModel {self.account_id}~{self.duplicate_account_id} "
            f"[{self.status}]>"
        )
