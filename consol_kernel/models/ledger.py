"""
Module: consol_kernel.models.ledger
Responsibility: ORM persistence for journal entries and their lines, as far
    as the consolidation engine reads them.
Architecture position: Kernel > Models.

Invariants enforced:
    - Line amounts are Numeric(38, 9) -- NEVER float.
    - Lines are ordered by line_no and owned by their entry (delete-orphan).

Audit relevance:
    is_intercompany, counterparty_entity_id and elimination_status are the
    only fields the engine writes; posting itself happens elsewhere.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consol_kernel.db.base import Base, TrackedBase
from consol_kernel.domain.entities import EliminationStatus, LedgerEntry, LedgerLine


class LedgerEntryModel(TrackedBase):
    """
    A journal entry header.

    Maps to the ``LedgerEntry`` value object.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_entry_entity_date", "entity_id", "entry_date"),
        Index("idx_ledger_entry_intercompany", "is_intercompany"),
    )

    entity_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("entities.id"), nullable=False,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_intercompany: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    counterparty_entity_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("entities.id"), nullable=True,
    )
    elimination_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    lines: Mapped[list["LedgerLineModel"]] = relationship(
        "LedgerLineModel",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="LedgerLineModel.line_no",
        lazy="selectin",
    )

    def to_dto(self) -> LedgerEntry:
        return LedgerEntry(
            id=self.id,
            entity_id=self.entity_id,
            entry_date=self.entry_date,
            description=self.description,
            lines=tuple(line.to_dto() for line in self.lines),
            is_intercompany=self.is_intercompany,
            counterparty_entity_id=self.counterparty_entity_id,
            elimination_status=(
                EliminationStatus(self.elimination_status)
                if self.elimination_status is not None
                else None
            ),
        )

    @classmethod
    def from_dto(cls, dto: LedgerEntry) -> "LedgerEntryModel":
        model = cls(
            id=dto.id,
            entity_id=dto.entity_id,
            entry_date=dto.entry_date,
            description=dto.description,
            lines=[
                LedgerLineModel(
                    line_no=i,
                    account_id=line.account_id,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                )
                for i, line in enumerate(dto.lines)
            ],
        )
        model.update_classification(dto)
        return model

    def update_classification(self, dto: LedgerEntry) -> None:
        """Copy the intercompany fields; lines are never rewritten."""
        self.is_intercompany = dto.is_intercompany
        self.counterparty_entity_id = dto.counterparty_entity_id
        self.elimination_status = (
            dto.elimination_status.value if dto.elimination_status is not None else None
        )

    def __repr__(self) -> str:
        return f"<LedgerEntryModel {self.id} {self.entry_date}>"


class LedgerLineModel(Base):
    """One debit/credit line of a journal entry."""

    __tablename__ = "ledger_lines"

    entry_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ledger_entries.id"), nullable=False, index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    debit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    entry: Mapped[LedgerEntryModel] = relationship(back_populates="lines")

    def to_dto(self) -> LedgerLine:
        return LedgerLine(
            account_id=self.account_id,
            debit_amount=Decimal(self.debit_amount),
            credit_amount=Decimal(self.credit_amount),
        )
