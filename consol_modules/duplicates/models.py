"""
Duplicate Detection Domain Models (``consol_modules.duplicates.models``).

Responsibility
--------------
Frozen value objects returned by ``DuplicateAccountDetector``: detection
candidates, batch alert-creation results and alert statistics.  The alert
itself (``DuplicateAlert``) lives in the kernel because the alert
repository stores it.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``confidence_score`` is a float in [0, 1]; it is a similarity ratio,
  not money.
"""

from dataclasses import dataclass, field

from consol_kernel.domain.alerts import (
    AlertStatus,
    DuplicateAlert,
    MatchType,
)


@dataclass(frozen=True)
class DuplicateCandidate:
    """A pair of accounts that look like the same account."""

    entity_id: str
    account_id: str
    account_number: str
    account_name: str
    duplicate_entity_id: str
    duplicate_account_id: str
    duplicate_account_number: str
    duplicate_account_name: str
    match_type: MatchType
    confidence_score: float

    @property
    def account_pair(self) -> frozenset[str]:
        return frozenset((self.account_id, self.duplicate_account_id))


@dataclass(frozen=True)
class AlertBatchItem:
    """Outcome for one candidate in a batch; exactly one of alert/error is set."""

    candidate: DuplicateCandidate
    alert: DuplicateAlert | None = None
    error: str | None = None


@dataclass(frozen=True)
class AlertBatchResult:
    created: int
    failed: int
    results: tuple[AlertBatchItem, ...] = ()


@dataclass(frozen=True)
class DuplicateStats:
    """Alert counts by status and match type, and the mean confidence."""

    total: int
    by_status: dict[str, int] = field(default_factory=dict)
    by_match_type: dict[str, int] = field(default_factory=dict)
    average_confidence: float = 0.0

    @property
    def pending(self) -> int:
        return self.by_status.get(AlertStatus.PENDING.value, 0)
