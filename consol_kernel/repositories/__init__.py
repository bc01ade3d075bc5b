"""Collaborator contracts and their in-memory implementations.

The SQLAlchemy implementations live in ``consol_kernel.repositories.sql``
and are imported explicitly by callers that use them.
"""

from consol_kernel.repositories.base import (
    AccountRepository,
    DuplicateAlertRepository,
    EntityRepository,
    LedgerEntryRepository,
    OwnershipRepository,
)
from consol_kernel.repositories.memory import (
    InMemoryAccountRepository,
    InMemoryDuplicateAlertRepository,
    InMemoryEntityRepository,
    InMemoryLedgerEntryRepository,
    InMemoryOwnershipRepository,
    InMemoryRepositories,
)

__all__ = [
    "AccountRepository",
    "DuplicateAlertRepository",
    "EntityRepository",
    "LedgerEntryRepository",
    "OwnershipRepository",
    "InMemoryAccountRepository",
    "InMemoryDuplicateAlertRepository",
    "InMemoryEntityRepository",
    "InMemoryLedgerEntryRepository",
    "InMemoryOwnershipRepository",
    "InMemoryRepositories",
]
