"""
Pure domain layer.

Value objects, workflow definitions and the clock abstraction, with NO
dependencies on SQLAlchemy, the database or I/O (SystemClock aside).
All domain objects are immutable.
"""

from consol_kernel.domain.alerts import AlertStatus, DuplicateAlert, MatchType
from consol_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from consol_kernel.domain.entities import (
    HUNDRED,
    OWNERSHIP,
    ZERO,
    Account,
    AccountType,
    EliminationStatus,
    Entity,
    EntityPurpose,
    LedgerEntry,
    LedgerLine,
    NormalBalance,
    OwnershipRelationship,
    default_normal_balance,
)
from consol_kernel.domain.parties import (
    ExternalContact,
    InternalUser,
    ResponsibleParty,
    describe_party,
    party_reference,
)
from consol_kernel.domain.warnings import ConsolidationWarning, WarningCode
from consol_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "AlertStatus",
    "DuplicateAlert",
    "MatchType",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "HUNDRED",
    "ZERO",
    "OWNERSHIP",
    "Account",
    "AccountType",
    "EliminationStatus",
    "Entity",
    "EntityPurpose",
    "LedgerEntry",
    "LedgerLine",
    "NormalBalance",
    "OwnershipRelationship",
    "default_normal_balance",
    "ExternalContact",
    "InternalUser",
    "ResponsibleParty",
    "describe_party",
    "party_reference",
    "ConsolidationWarning",
    "WarningCode",
    "Transition",
    "Workflow",
]
