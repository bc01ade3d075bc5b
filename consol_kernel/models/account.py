"""
Module: consol_kernel.models.account
Responsibility: ORM persistence for per-entity chart-of-accounts rows.
Architecture position: Kernel > Models.

Invariants enforced:
    - current_balance is Numeric(38, 9) -- NEVER float.
    - account_number is unique within an entity (uq_gl_account_entity_number).

Audit relevance:
    template_account_id records lineage from the system chart-of-accounts
    template.  Accounts with lineage are deactivated, never hard-deleted.
"""

from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consol_kernel.db.base import TrackedBase
from consol_kernel.domain.entities import Account, AccountType, NormalBalance


class AccountModel(TrackedBase):
    """
    A general-ledger account belonging to one entity.

    Maps to the ``Account`` value object.
    """

    __tablename__ = "gl_accounts"

    __table_args__ = (
        UniqueConstraint("entity_id", "account_number", name="uq_gl_account_entity_number"),
        Index("idx_gl_account_entity", "entity_id"),
        Index("idx_gl_account_type", "account_type"),
    )

    entity_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("entities.id"), nullable=False,
    )
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_header: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)
    template_account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self) -> Account:
        return Account(
            id=self.id,
            entity_id=self.entity_id,
            account_number=self.account_number,
            account_name=self.account_name,
            account_type=AccountType(self.account_type),
            is_header=self.is_header,
            current_balance=Decimal(self.current_balance),
            is_active=self.is_active,
            normal_balance=NormalBalance(self.normal_balance),
            template_account_id=self.template_account_id,
            is_system=self.is_system,
        )

    @classmethod
    def from_dto(cls, dto: Account) -> "AccountModel":
        model = cls(id=dto.id)
        model.update_from_dto(dto)
        return model

    def update_from_dto(self, dto: Account) -> None:
        self.entity_id = dto.entity_id
        self.account_number = dto.account_number
        self.account_name = dto.account_name
        self.account_type = dto.account_type.value
        self.is_header = dto.is_header
        self.current_balance = dto.current_balance
        self.is_active = dto.is_active
        self.normal_balance = dto.normal_balance.value
        self.template_account_id = dto.template_account_id
        self.is_system = dto.is_system

    def __repr__(self) -> str:
        return f"<AccountModel {self.account_number}: {self.account_name}>"
