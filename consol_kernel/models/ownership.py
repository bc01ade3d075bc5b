"""
Module: consol_kernel.models.ownership
Responsibility: ORM persistence for directed ownership relationships
    between entities.
Architecture position: Kernel > Models.

Invariants enforced:
    - ownership_percentage is Numeric(38, 9) -- NEVER float.
    - Self-ownership and out-of-range percentages are rejected when the row
      is converted to the domain value object; the write path never persists
      a relationship it could not construct.
    - The <= 100% per-child ceiling is enforced by the graph store under the
      child row lock, not by a database constraint.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from consol_kernel.db.base import TrackedBase
from consol_kernel.domain.entities import OWNERSHIP, OwnershipRelationship


class OwnershipRelationshipModel(TrackedBase):
    """
    ``parent_entity_id`` owns ``ownership_percentage`` of ``child_entity_id``.

    Maps to the ``OwnershipRelationship`` value object.
    """

    __tablename__ = "ownership_relationships"

    __table_args__ = (
        Index("idx_ownership_parent", "parent_entity_id"),
        Index("idx_ownership_child", "child_entity_id"),
    )

    parent_entity_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("entities.id"), nullable=False,
    )
    child_entity_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("entities.id"), nullable=False,
    )
    ownership_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    relationship_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OWNERSHIP,
    )
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> OwnershipRelationship:
        return OwnershipRelationship(
            id=self.id,
            parent_entity_id=self.parent_entity_id,
            child_entity_id=self.child_entity_id,
            ownership_percentage=Decimal(self.ownership_percentage),
            relationship_type=self.relationship_type,
            effective_date=self.effective_date,
            end_date=self.end_date,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: OwnershipRelationship) -> "OwnershipRelationshipModel":
        model = cls(id=dto.id)
        model.update_from_dto(dto)
        return model

    def update_from_dto(self, dto: OwnershipRelationship) -> None:
        self.parent_entity_id = dto.parent_entity_id
        self.child_entity_id = dto.child_entity_id
        self.ownership_percentage = dto.ownership_percentage
        self.relationship_type = dto.relationship_type
        self.effective_date = dto.effective_date
        self.end_date = dto.end_date
        self.notes = dto.notes

    def __repr__(self) -> str:
        return (
            f"<OwnershipRelationshipModel {self.parent_entity_id} -> "
            f"{self.child_entity_id} {self.ownership_percentage}%>"
        )
