"""SQLAlchemy ORM models for the SQL-backed collaborator."""

from consol_kernel.models.account import AccountModel
from consol_kernel.models.duplicate_alert import DuplicateAlertModel
from consol_kernel.models.entity import EntityModel
from consol_kernel.models.ledger import LedgerEntryModel, LedgerLineModel
from consol_kernel.models.ownership import OwnershipRelationshipModel

__all__ = [
    "AccountModel",
    "DuplicateAlertModel",
    "EntityModel",
    "LedgerEntryModel",
    "LedgerLineModel",
    "OwnershipRelationshipModel",
]
