"""
Module: consol_kernel.models.entity
Responsibility: ORM persistence for legal entities (holding companies,
    operating companies, SPEs).
Architecture position: Kernel > Models.  May import from db/base.py and the
    domain value objects it maps to.

Invariants enforced:
    - entity_purpose is stored as the EntityPurpose enum value string.

Audit relevance:
    Entity rows are the lock target for ownership writes: the graph store
    takes SELECT ... FOR UPDATE on the child entity before checking the 100%
    ceiling.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from consol_kernel.db.base import TrackedBase
from consol_kernel.domain.entities import Entity, EntityPurpose


class EntityModel(TrackedBase):
    """
    A legal entity in the portfolio.

    Maps to the ``Entity`` value object.
    """

    __tablename__ = "entities"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_purpose: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EntityPurpose.OPERATING_COMPANY.value,
    )
    project_type: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self) -> Entity:
        return Entity(
            id=self.id,
            name=self.name,
            entity_purpose=EntityPurpose(self.entity_purpose),
            project_type=self.project_type,
        )

    @classmethod
    def from_dto(cls, dto: Entity) -> "EntityModel":
        return cls(
            id=dto.id,
            name=dto.name,
            entity_purpose=dto.entity_purpose.value,
            project_type=dto.project_type,
        )

    def __repr__(self) -> str:
        return f"<EntityModel {self.id}: {self.name}>"
