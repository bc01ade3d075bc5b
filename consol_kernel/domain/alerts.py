"""
Duplicate-account alert value objects (``consol_kernel.domain.alerts``).

An alert records that two accounts belonging to related entities look like
the same account, and tracks the reviewer's verdict on that claim.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from consol_kernel.domain.parties import ResponsibleParty


class MatchType(str, Enum):
    """How two accounts were judged to be duplicates."""

    EXACT_NUMBER = "exact_number"
    EXACT_MATCH = "exact_match"
    SIMILAR_NAME = "similar_name"


class AlertStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"
    MERGED = "merged"


@dataclass(frozen=True)
class DuplicateAlert:
    """
    A recorded duplicate-account finding.

    The account pair is unordered for identity purposes: an alert for
    (a, b) also covers (b, a).  ``reviewed_at``, ``reviewed_by`` and
    ``notes`` are set when the alert leaves ``pending``.
    """

    id: str
    entity_id: str
    account_id: str
    duplicate_entity_id: str
    duplicate_account_id: str
    match_type: MatchType
    confidence_score: float
    status: AlertStatus = AlertStatus.PENDING
    created_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: ResponsibleParty | None = None
    notes: str | None = None

    @property
    def account_pair(self) -> frozenset[str]:
        return frozenset((self.account_id, self.duplicate_account_id))

    def covers(self, account_a: str, account_b: str) -> bool:
        return self.account_pair == frozenset((account_a, account_b))
