"""
Ownership Graph Services (``consol_modules.ownership.service``).

Responsibility
--------------
``OwnershipGraphStore`` owns validated writes to the ownership graph and the
raw reads around them (owners, subsidiaries, total and available
ownership).  ``OwnershipResolver`` loads the reachable part of the graph and
hands it to the pure traversal in ``consol_engines.ownership_graph`` to
produce subsidiary trees, ownership chains and look-through interests.

Architecture position
---------------------
**Modules layer**.  Composes ``EntityRepository`` and ``OwnershipRepository``
with an injected ``Clock``; consumed by ``ConsolidationEngine``.

Invariants enforced
-------------------
* For any child, the sum of active ``ownership`` relationships is <= 100.
  The check and the write run inside the repository's per-child write lock.
* ``available`` reported on overallocation excludes the relationship being
  updated.
* "Active" means ``end_date`` is null or on/after the clock's today.
* Only ``relationship_type == "ownership"`` counts toward the ceiling and
  toward consolidation.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown parent, child, or traversal root.
* ``RelationshipNotFoundError`` -- unknown relationship id.
* ``OwnershipOverallocatedError`` -- ceiling would be exceeded.
* ``SelfOwnershipError`` / ``InvalidOwnershipPercentageError`` -- malformed
  relationship.

Audit relevance
---------------
Every write logs the child, the percentage and the resulting total; every
rejected write logs ``ownership_overallocated`` with the available figure.
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

from consol_engines.ownership_graph import (
    ChainResult,
    OwnershipEdge,
    TraversalResult,
    build_ownership_chain,
    build_subsidiary_tree,
    effective_interest,
)
from consol_kernel.domain.clock import Clock, SystemClock
from consol_kernel.domain.entities import (
    HUNDRED,
    OWNERSHIP,
    ZERO,
    Entity,
    OwnershipRelationship,
)
from consol_kernel.exceptions import EntityNotFoundError, OwnershipOverallocatedError
from consol_kernel.logging_config import get_logger
from consol_kernel.repositories.base import EntityRepository, OwnershipRepository

logger = get_logger("modules.ownership.service")

_UPDATABLE_FIELDS = frozenset({
    "ownership_percentage",
    "relationship_type",
    "effective_date",
    "end_date",
    "notes",
})


def _total(relationships: list[OwnershipRelationship]) -> Decimal:
    return sum((r.ownership_percentage for r in relationships), ZERO)


class OwnershipGraphStore:
    """
    Validated reads and writes over the ownership graph.

    Contract
    --------
    * Reads never raise for an unknown entity; they return empty results.
    * Writes validate both endpoints, then check the ceiling under
      ``ownership_write_lock(child_id)``.

    Non-goals
    ---------
    * Does not commit.  With the SQL collaborator the caller's
      ``session_scope()`` owns the transaction (and therefore the row lock).
    """

    def __init__(
        self,
        entities: EntityRepository,
        ownership: OwnershipRepository,
        clock: Clock | None = None,
    ):
        self._entities = entities
        self._ownership = ownership
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_relationship(self, relationship_id: str) -> OwnershipRelationship:
        return self._ownership.get(relationship_id)

    def get_relationships(
        self,
        entity_id: str,
        as_parent: bool = False,
        as_child: bool = False,
        relationship_type: str | None = None,
        active_only: bool = False,
    ) -> list[OwnershipRelationship]:
        """Relationships touching ``entity_id``; neither flag means both sides."""
        return self._ownership.list_by_entity(
            entity_id,
            as_parent=as_parent,
            as_child=as_child,
            relationship_type=relationship_type,
            active_only=active_only,
            as_of=self._clock.today() if active_only else None,
        )

    def get_owners(
        self,
        child_id: str,
        active_only: bool = True,
        as_of: date | None = None,
    ) -> list[OwnershipRelationship]:
        """Ownership edges into ``child_id``."""
        return self._ownership.list_by_entity(
            child_id,
            as_child=True,
            relationship_type=OWNERSHIP,
            active_only=active_only,
            as_of=(as_of or self._clock.today()) if active_only else None,
        )

    def get_subsidiaries(
        self,
        parent_id: str,
        active_only: bool = True,
        as_of: date | None = None,
    ) -> list[OwnershipRelationship]:
        """Ownership edges out of ``parent_id``."""
        return self._ownership.list_by_entity(
            parent_id,
            as_parent=True,
            relationship_type=OWNERSHIP,
            active_only=active_only,
            as_of=(as_of or self._clock.today()) if active_only else None,
        )

    def get_total_ownership(self, child_id: str) -> Decimal:
        """Sum of active ownership percentages held in ``child_id``."""
        return _total(self.get_owners(child_id, active_only=True))

    def get_available_ownership(self, child_id: str) -> Decimal:
        return HUNDRED - self.get_total_ownership(child_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def create_relationship(
        self,
        parent_entity_id: str,
        child_entity_id: str,
        ownership_percentage: Decimal,
        relationship_type: str = OWNERSHIP,
        effective_date: date | None = None,
        end_date: date | None = None,
        notes: str | None = None,
        relationship_id: str | None = None,
    ) -> OwnershipRelationship:
        """
        Record that ``parent_entity_id`` owns ``ownership_percentage`` of
        ``child_entity_id``.

        Raises:
            SelfOwnershipError, InvalidOwnershipPercentageError: malformed.
            EntityNotFoundError: either endpoint is unknown.
            OwnershipOverallocatedError: the child would exceed 100%.
        """
        relationship = OwnershipRelationship(
            id=relationship_id or str(uuid4()),
            parent_entity_id=parent_entity_id,
            child_entity_id=child_entity_id,
            ownership_percentage=ownership_percentage,
            relationship_type=relationship_type,
            effective_date=effective_date or self._clock.today(),
            end_date=end_date,
            notes=notes,
        )
        self._entities.get(parent_entity_id)
        self._entities.get(child_entity_id)

        with self._ownership.ownership_write_lock(child_entity_id):
            if self._counts_toward_ceiling(relationship):
                others = self.get_total_ownership(child_entity_id)
                self._check_ceiling(relationship, others)
            self._ownership.add(relationship)

        logger.info(
            "ownership_relationship_created",
            extra={
                "relationship_id": relationship.id,
                "parent_entity_id": parent_entity_id,
                "child_entity_id": child_entity_id,
                "ownership_percentage": str(relationship.ownership_percentage),
                "relationship_type": relationship_type,
            },
        )
        return relationship

    def update_relationship(self, relationship_id: str, **changes: Any) -> OwnershipRelationship:
        """
        Change percentage, type, dates or notes of an existing relationship.

        Endpoints cannot be changed; end the relationship and create a new
        one instead.

        Raises:
            ValueError: an unknown or immutable field was passed.
            RelationshipNotFoundError: unknown id.
            OwnershipOverallocatedError: the child would exceed 100%; the
                reported ``available`` excludes this relationship.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        current = self._ownership.get(relationship_id)
        child_id = current.child_entity_id

        with self._ownership.ownership_write_lock(child_id):
            current = self._ownership.get(relationship_id)
            updated = replace(current, **changes)
            if self._counts_toward_ceiling(updated):
                others = _total([
                    r for r in self.get_owners(child_id, active_only=True)
                    if r.id != relationship_id
                ])
                self._check_ceiling(updated, others)
            self._ownership.save(updated)

        logger.info(
            "ownership_relationship_updated",
            extra={
                "relationship_id": relationship_id,
                "child_entity_id": child_id,
                "changed_fields": sorted(changes),
                "ownership_percentage": str(updated.ownership_percentage),
            },
        )
        return updated

    def end_relationship(
        self,
        relationship_id: str,
        end_date: date | None = None,
    ) -> OwnershipRelationship:
        """Divest: set ``end_date`` (default: today).  The row is kept."""
        current = self._ownership.get(relationship_id)
        with self._ownership.ownership_write_lock(current.child_entity_id):
            ended = replace(
                self._ownership.get(relationship_id),
                end_date=end_date or self._clock.today(),
            )
            self._ownership.save(ended)

        logger.info(
            "ownership_relationship_ended",
            extra={
                "relationship_id": relationship_id,
                "child_entity_id": ended.child_entity_id,
                "end_date": ended.end_date,
            },
        )
        return ended

    def delete_relationship(self, relationship_id: str) -> None:
        current = self._ownership.get(relationship_id)
        with self._ownership.ownership_write_lock(current.child_entity_id):
            self._ownership.delete(relationship_id)
        logger.info(
            "ownership_relationship_deleted",
            extra={
                "relationship_id": relationship_id,
                "child_entity_id": current.child_entity_id,
            },
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _counts_toward_ceiling(self, rel: OwnershipRelationship) -> bool:
        return rel.is_ownership and rel.is_active_on(self._clock.today())

    def _check_ceiling(self, rel: OwnershipRelationship, others_total: Decimal) -> None:
        available = HUNDRED - others_total
        if rel.ownership_percentage > available:
            logger.warning(
                "ownership_overallocated",
                extra={
                    "child_entity_id": rel.child_entity_id,
                    "parent_entity_id": rel.parent_entity_id,
                    "requested": str(rel.ownership_percentage),
                    "available": str(available),
                },
            )
            raise OwnershipOverallocatedError(
                rel.child_entity_id, rel.ownership_percentage, available
            )


class OwnershipResolver:
    """
    Look-through ownership over the active graph.

    Contract
    --------
    * Traversals verify the starting entity exists, then load every
      reachable active ownership edge before calling the pure engine.
    * Results are tagged: ``truncated`` is True when a cycle was cut, and
      the cut is described by a ``CYCLE_DETECTED`` warning.
    """

    def __init__(
        self,
        store: OwnershipGraphStore,
        entities: EntityRepository,
        clock: Clock | None = None,
    ):
        self._store = store
        self._entities = entities
        self._clock = clock or SystemClock()

    def get_owners(self, child_id: str) -> list[OwnershipRelationship]:
        return self._store.get_owners(child_id)

    def get_available_ownership(self, child_id: str) -> Decimal:
        return self._store.get_available_ownership(child_id)

    def get_subsidiary_tree(self, entity_id: str, as_of: date | None = None) -> TraversalResult:
        self._entities.get(entity_id)
        day = as_of or self._clock.today()
        edges = self._load_edges(
            entity_id,
            lambda eid: self._store.get_subsidiaries(eid, as_of=day),
            lambda e: e.child_id,
        )
        result = build_subsidiary_tree(
            root_id=entity_id,
            edges_by_parent=edges,
            entities=self._lookup(edges),
        )
        logger.info(
            "subsidiary_tree_resolved",
            extra={
                "root_entity_id": entity_id,
                "as_of": day,
                "edge_count": sum(len(v) for v in edges.values()),
                "truncated": result.truncated,
            },
        )
        return result

    def get_ownership_chain(self, entity_id: str, as_of: date | None = None) -> ChainResult:
        self._entities.get(entity_id)
        day = as_of or self._clock.today()
        edges = self._load_edges(
            entity_id,
            lambda eid: self._store.get_owners(eid, as_of=day),
            lambda e: e.parent_id,
        )
        result = build_ownership_chain(
            entity_id=entity_id,
            edges_by_child=edges,
            entities=self._lookup(edges),
        )
        logger.info(
            "ownership_chain_resolved",
            extra={
                "entity_id": entity_id,
                "as_of": day,
                "edge_count": sum(len(v) for v in edges.values()),
                "truncated": result.truncated,
            },
        )
        return result

    def calculate_effective_interest(self, chain: ChainResult, owner_id: str) -> Decimal:
        """``owner_id``'s look-through interest in the chain's start entity."""
        return effective_interest(chain, owner_id)

    def _load_edges(self, start_id, fetch, far_end) -> dict[str, list[OwnershipEdge]]:
        # Breadth-first load of every reachable edge; each entity fetched once.
        edges: dict[str, list[OwnershipEdge]] = {}
        queue = deque([start_id])
        while queue:
            eid = queue.popleft()
            if eid in edges:
                continue
            edges[eid] = [OwnershipEdge.from_relationship(r) for r in fetch(eid)]
            queue.extend(far_end(e) for e in edges[eid] if far_end(e) not in edges)
        return edges

    def _lookup(self, edges: dict[str, list[OwnershipEdge]]) -> dict[str, Entity]:
        lookup: dict[str, Entity] = {}
        for eid in edges:
            try:
                lookup[eid] = self._entities.get(eid)
            except EntityNotFoundError:
                continue
        return lookup
