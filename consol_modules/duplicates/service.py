"""
Duplicate Account Detector (``consol_modules.duplicates.service``).

Responsibility
--------------
Compare the charts of accounts of related entities, propose duplicate
account pairs, record them as alerts, and drive each alert through its
review workflow (``pending -> confirmed | dismissed | merged``).

Architecture position
---------------------
**Modules layer**.  Matching itself is the pure engine
``consol_engines.name_matching``; this service supplies accounts from the
``AccountLedgerReader``, related entities from the ``OwnershipGraphStore``
and persists alerts through a ``DuplicateAlertRepository``.

Invariants enforced
-------------------
* At most one alert per unordered account pair.
* Only active accounts are compared.
* A pair already covered by an alert (any status) is not proposed again.
* Terminal alerts have no outgoing transitions.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown entity in a detection request.
* ``AlertNotFoundError`` -- unknown alert id.
* ``DuplicateAlertExistsError`` -- an alert already covers the pair.
* ``InvalidStateTransitionError`` -- action not allowed from the current
  status.

Audit relevance
---------------
Every review transition logs the alert, the old and new status and the
reviewer reference (``user:<id>`` or ``contact:<id>``).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from uuid import uuid4

from consol_config.schema import DuplicateDetectionConfig
from consol_engines.name_matching import match_accounts
from consol_kernel.domain.alerts import AlertStatus, DuplicateAlert, MatchType
from consol_kernel.domain.clock import Clock, SystemClock
from consol_kernel.domain.parties import (
    ResponsibleParty,
    describe_party,
    party_reference,
)
from consol_kernel.exceptions import (
    DuplicateAlertExistsError,
    InvalidStateTransitionError,
)
from consol_kernel.logging_config import LogContext, get_logger
from consol_kernel.repositories.base import DuplicateAlertRepository
from consol_modules.duplicates.models import (
    AlertBatchItem,
    AlertBatchResult,
    DuplicateCandidate,
    DuplicateStats,
)
from consol_modules.duplicates.workflows import DUPLICATE_ALERT_WORKFLOW
from consol_modules.ledger.service import AccountLedgerReader
from consol_modules.ownership.service import OwnershipGraphStore

logger = get_logger("modules.duplicates.service")


class DuplicateAccountDetector:
    """
    Finds and tracks duplicate accounts across related entities.

    Contract
    --------
    * ``detect_duplicates`` and ``scan_related_entities`` are read-only;
      they return candidates and never create alerts.
    * Review transitions stamp ``reviewed_at`` from the injected clock.
    """

    def __init__(
        self,
        ledger: AccountLedgerReader,
        store: OwnershipGraphStore,
        alerts: DuplicateAlertRepository,
        config: DuplicateDetectionConfig | None = None,
        clock: Clock | None = None,
    ):
        self._ledger = ledger
        self._store = store
        self._alerts = alerts
        self._config = config or DuplicateDetectionConfig()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Detection
    # =========================================================================

    def detect_duplicates(
        self,
        entity_a: str,
        entity_b: str,
        threshold: float | None = None,
    ) -> list[DuplicateCandidate]:
        """
        Candidate duplicate pairs between two entities' active accounts.

        Args:
            entity_a: First entity; its accounts populate ``account_*``.
            entity_b: Second entity; its accounts populate
                ``duplicate_account_*``.
            threshold: Minimum name similarity for ``similar_name``
                matches.  Defaults to the configured threshold.

        Returns:
            Candidates in account-number order of ``entity_a``, skipping
            pairs an existing alert already covers.
        """
        if threshold is None:
            threshold = self._config.threshold
        elif not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")

        accounts_a = self._ledger.get_accounts(entity_a, active_only=True)
        accounts_b = self._ledger.get_accounts(entity_b, active_only=True)

        pairs = match_accounts(
            accounts_a=accounts_a,
            accounts_b=accounts_b,
            rules=self._config.normalization,
            threshold=threshold,
            length_cutoff=self._config.length_cutoff,
        )

        candidates = []
        skipped = 0
        for acct_a, acct_b, match in pairs:
            if acct_a.id == acct_b.id:
                continue
            if self._alerts.find_by_account_pair(acct_a.id, acct_b.id) is not None:
                skipped += 1
                continue
            candidates.append(
                DuplicateCandidate(
                    entity_id=acct_a.entity_id,
                    account_id=acct_a.id,
                    account_number=acct_a.account_number,
                    account_name=acct_a.account_name,
                    duplicate_entity_id=acct_b.entity_id,
                    duplicate_account_id=acct_b.id,
                    duplicate_account_number=acct_b.account_number,
                    duplicate_account_name=acct_b.account_name,
                    match_type=match.match_type,
                    confidence_score=match.confidence,
                )
            )

        logger.info(
            "duplicate_detection_completed",
            extra={
                "entity_a": entity_a,
                "entity_b": entity_b,
                "threshold": threshold,
                "accounts_compared": len(accounts_a) * len(accounts_b),
                "candidate_count": len(candidates),
                "already_alerted": skipped,
            },
        )
        return candidates

    def scan_related_entities(self, entity_id: str) -> list[DuplicateCandidate]:
        """
        Run ``detect_duplicates`` against every entity linked to
        ``entity_id`` by a relationship of any type, in either direction,
        active or ended.  Each related entity is scanned once.
        """
        related: list[str] = []
        for rel in self._store.get_relationships(entity_id):
            other = (
                rel.child_entity_id
                if rel.parent_entity_id == entity_id
                else rel.parent_entity_id
            )
            if other not in related:
                related.append(other)

        candidates: list[DuplicateCandidate] = []
        for other in related:
            candidates.extend(self.detect_duplicates(entity_id, other))

        logger.info(
            "related_entity_scan_completed",
            extra={
                "entity_id": entity_id,
                "related_entity_ids": related,
                "candidate_count": len(candidates),
            },
        )
        return candidates

    # =========================================================================
    # Alerts
    # =========================================================================

    def create_alert(self, candidate: DuplicateCandidate) -> DuplicateAlert:
        existing = self._alerts.find_by_account_pair(
            candidate.account_id, candidate.duplicate_account_id
        )
        if existing is not None:
            raise DuplicateAlertExistsError(
                candidate.account_id, candidate.duplicate_account_id, existing.id
            )

        alert = DuplicateAlert(
            id=str(uuid4()),
            entity_id=candidate.entity_id,
            account_id=candidate.account_id,
            duplicate_entity_id=candidate.duplicate_entity_id,
            duplicate_account_id=candidate.duplicate_account_id,
            match_type=candidate.match_type,
            confidence_score=candidate.confidence_score,
            status=AlertStatus(DUPLICATE_ALERT_WORKFLOW.initial_state),
            created_at=self._clock.now(),
        )
        self._alerts.add(alert)
        logger.info(
            "duplicate_alert_created",
            extra={
                "alert_id": alert.id,
                "account_id": alert.account_id,
                "duplicate_account_id": alert.duplicate_account_id,
                "match_type": alert.match_type.value,
                "confidence_score": alert.confidence_score,
            },
        )
        return alert

    def create_alerts_from_scan(
        self, candidates: list[DuplicateCandidate]
    ) -> AlertBatchResult:
        """Create an alert per candidate; existing pairs are reported, not raised."""
        results = []
        for candidate in candidates:
            try:
                alert = self.create_alert(candidate)
            except DuplicateAlertExistsError as exc:
                results.append(AlertBatchItem(candidate=candidate, error=str(exc)))
            else:
                results.append(AlertBatchItem(candidate=candidate, alert=alert))

        created = sum(1 for r in results if r.alert is not None)
        logger.info(
            "duplicate_alert_batch_created",
            extra={"created": created, "failed": len(results) - created},
        )
        return AlertBatchResult(
            created=created,
            failed=len(results) - created,
            results=tuple(results),
        )

    def get_alert(self, alert_id: str) -> DuplicateAlert:
        return self._alerts.get(alert_id)

    def get_alerts(
        self,
        entity_id: str | None = None,
        status: AlertStatus | None = None,
    ) -> list[DuplicateAlert]:
        """Alerts touching ``entity_id`` on either side, newest first."""
        return self._alerts.list(entity_id=entity_id, status=status)

    def get_stats(self, entity_id: str | None = None) -> DuplicateStats:
        alerts = self._alerts.list(entity_id=entity_id)
        by_status = Counter(a.status.value for a in alerts)
        by_match = Counter(a.match_type.value for a in alerts)
        average = (
            sum(a.confidence_score for a in alerts) / len(alerts) if alerts else 0.0
        )
        return DuplicateStats(
            total=len(alerts),
            by_status={s.value: by_status.get(s.value, 0) for s in AlertStatus},
            by_match_type={m.value: by_match.get(m.value, 0) for m in MatchType},
            average_confidence=average,
        )

    # =========================================================================
    # Review workflow
    # =========================================================================

    def confirm(
        self,
        alert_id: str,
        notes: str | None = None,
        reviewer: ResponsibleParty | None = None,
    ) -> DuplicateAlert:
        """The accounts are duplicates; merging is left to the caller."""
        return self._transition(alert_id, "confirm", notes, reviewer)

    def dismiss(
        self,
        alert_id: str,
        notes: str | None = None,
        reviewer: ResponsibleParty | None = None,
    ) -> DuplicateAlert:
        return self._transition(alert_id, "dismiss", notes, reviewer)

    def mark_merged(
        self,
        alert_id: str,
        notes: str | None = None,
        reviewer: ResponsibleParty | None = None,
    ) -> DuplicateAlert:
        return self._transition(alert_id, "merge", notes, reviewer)

    def _transition(
        self,
        alert_id: str,
        action: str,
        notes: str | None,
        reviewer: ResponsibleParty | None,
    ) -> DuplicateAlert:
        alert = self._alerts.get(alert_id)
        transition = DUPLICATE_ALERT_WORKFLOW.find_transition(alert.status.value, action)
        if transition is None:
            allowed = DUPLICATE_ALERT_WORKFLOW.allowed_actions(alert.status.value)
            logger.warning(
                "duplicate_alert_transition_rejected",
                extra={
                    "alert_id": alert_id,
                    "status": alert.status.value,
                    "action": action,
                    "allowed_actions": list(allowed),
                },
            )
            raise InvalidStateTransitionError(
                DUPLICATE_ALERT_WORKFLOW.name, alert.status.value, action, allowed
            )

        reviewed = replace(
            alert,
            status=AlertStatus(transition.to_state),
            reviewed_at=self._clock.now(),
            reviewed_by=reviewer,
            notes=notes if notes is not None else alert.notes,
        )
        self._alerts.save(reviewed)

        actor = party_reference(reviewer) if reviewer is not None else None
        with LogContext.bind(actor_id=actor):
            logger.info(
                "duplicate_alert_reviewed",
                extra={
                    "alert_id": alert_id,
                    "from_status": transition.from_state,
                    "to_status": transition.to_state,
                    "reviewer": describe_party(reviewer) if reviewer is not None else None,
                },
            )
        return reviewed
