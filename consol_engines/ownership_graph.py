"""
consol_engines.ownership_graph -- Look-through ownership over an entity graph.

Responsibility:
    Expand ownership edges downward from a root (subsidiary tree) or upward
    from an entity (ownership chain), computing each entity's effective
    interest along every path, and flatten a tree into per-entity totals for
    consolidation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller loads the
    reachable edges into a mapping first; nothing here touches a repository.

Invariants enforced:
    - Root effective ownership is exactly 100.
    - child effective = direct x parent effective / 100, in Decimal, with no
      intermediate rounding.
    - Cycle safety: the traversal carries an immutable frozenset of the
      entity ids on the current path.  An edge back into that set is not
      expanded; the node that owns the edge is marked ``truncated`` and a
      CYCLE_DETECTED warning records the path.  Because the set is per path,
      an entity reachable along two distinct paths (a diamond) appears under
      both, and ``flatten_tree`` sums its interest.
    - The walk uses an explicit stack, so malformed input cannot exhaust the
      interpreter's recursion limit.

Failure modes:
    None raised.  Cycles degrade the result (``truncated=True``).

Audit relevance:
    Effective ownership drives the weight applied to every balance in a
    consolidated trial balance.  Every invocation is traced via
    ``@traced_engine``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeVar

from consol_engines.tracer import traced_engine
from consol_kernel.domain.entities import HUNDRED, Entity, OwnershipRelationship
from consol_kernel.domain.warnings import ConsolidationWarning, WarningCode
from consol_kernel.logging_config import get_logger

logger = get_logger("engines.ownership_graph")


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class OwnershipEdge:
    """An active ownership edge as the traversal sees it."""

    relationship_id: str
    parent_id: str
    child_id: str
    percentage: Decimal

    @classmethod
    def from_relationship(cls, rel: OwnershipRelationship) -> OwnershipEdge:
        return cls(
            relationship_id=rel.id,
            parent_id=rel.parent_entity_id,
            child_id=rel.child_entity_id,
            percentage=rel.ownership_percentage,
        )


@dataclass(frozen=True)
class ConsolidationNode:
    """
    One entity in a subsidiary tree.

    ``direct_ownership`` is the percentage on the edge from the parent node
    (100 for the root); ``effective_ownership`` is the root's look-through
    interest in this entity along this particular path.
    """

    entity_id: str
    direct_ownership: Decimal
    effective_ownership: Decimal
    depth: int
    relationship_id: str | None = None
    entity: Entity | None = None
    children: tuple[ConsolidationNode, ...] = ()
    truncated: bool = False


@dataclass(frozen=True)
class ChainNode:
    """
    One owner in an upward ownership chain.

    ``effective_interest`` is this owner's look-through interest in the
    entity the chain started from, along this particular path.
    """

    entity_id: str
    direct_ownership: Decimal
    effective_interest: Decimal
    depth: int
    relationship_id: str | None = None
    entity: Entity | None = None
    owners: tuple[ChainNode, ...] = ()
    truncated: bool = False


@dataclass(frozen=True)
class TraversalResult:
    """Tagged result of a downward traversal."""

    root: ConsolidationNode
    truncated: bool = False
    warnings: tuple[ConsolidationWarning, ...] = ()


@dataclass(frozen=True)
class ChainResult:
    """Tagged result of an upward traversal.

    ``start`` is the entity the chain was built for (effective 100, depth 0);
    its ``owners`` are the first layer of the chain.
    """

    start: ChainNode
    truncated: bool = False
    warnings: tuple[ConsolidationWarning, ...] = ()

    @property
    def owners(self) -> tuple[ChainNode, ...]:
        return self.start.owners


@dataclass(frozen=True)
class FlattenedShare:
    """One entity's totals across every path of a tree."""

    entity_id: str
    direct_ownership: Decimal
    effective_ownership: Decimal
    depth: int
    path_count: int


# =============================================================================
# Traversal
# =============================================================================


@dataclass
class _Frame:
    entity_id: str
    edge: OwnershipEdge | None
    depth: int
    effective: Decimal
    trail: tuple[str, ...]
    on_path: frozenset[str]
    pending: Iterator[OwnershipEdge]
    children: list = field(default_factory=list)
    truncated: bool = False


NodeT = TypeVar("NodeT")


def _walk(
    start_id: str,
    edges_of: Mapping[str, Sequence[OwnershipEdge]],
    far_end: Callable[[OwnershipEdge], str],
    build: Callable[[_Frame], NodeT],
    direction: str,
) -> tuple[NodeT, bool, list[ConsolidationWarning]]:
    warnings: list[ConsolidationWarning] = []
    any_truncated = False
    stack = [
        _Frame(
            entity_id=start_id,
            edge=None,
            depth=0,
            effective=HUNDRED,
            trail=(start_id,),
            on_path=frozenset((start_id,)),
            pending=iter(edges_of.get(start_id, ())),
        )
    ]
    result: NodeT | None = None

    while stack:
        frame = stack[-1]
        edge = next(frame.pending, None)

        if edge is None:
            stack.pop()
            node = build(frame)
            if stack:
                stack[-1].children.append(node)
            else:
                result = node
            continue

        next_id = far_end(edge)
        if next_id in frame.on_path:
            frame.truncated = True
            any_truncated = True
            cycle = frame.trail + (next_id,)
            logger.warning(
                "ownership_cycle_detected",
                extra={
                    "direction": direction,
                    "path": list(cycle),
                    "relationship_id": edge.relationship_id,
                },
            )
            warnings.append(
                ConsolidationWarning(
                    code=WarningCode.CYCLE_DETECTED,
                    message=(
                        f"Ownership cycle detected ({direction}): "
                        + " -> ".join(cycle)
                    ),
                    entity_id=next_id,
                    details={
                        "path": list(cycle),
                        "relationship_id": edge.relationship_id,
                        "direction": direction,
                    },
                )
            )
            continue

        stack.append(
            _Frame(
                entity_id=next_id,
                edge=edge,
                depth=frame.depth + 1,
                effective=edge.percentage * frame.effective / HUNDRED,
                trail=frame.trail + (next_id,),
                on_path=frame.on_path | {next_id},
                pending=iter(edges_of.get(next_id, ())),
            )
        )

    assert result is not None
    return result, any_truncated, warnings


@traced_engine("ownership_graph", "1.0", fingerprint_fields=("root_id", "edges_by_parent"))
def build_subsidiary_tree(
    *,
    root_id: str,
    edges_by_parent: Mapping[str, Sequence[OwnershipEdge]],
    entities: Mapping[str, Entity] | None = None,
) -> TraversalResult:
    """
    Expand every edge downward from ``root_id``.

    Args:
        root_id: Entity at the top of the tree.
        edges_by_parent: Active ownership edges keyed by parent id, in the
            order children should appear.
        entities: Optional entity lookup attached to each node.

    Returns:
        TraversalResult whose root carries effective ownership 100.
    """
    lookup = entities or {}

    def build(frame: _Frame) -> ConsolidationNode:
        return ConsolidationNode(
            entity_id=frame.entity_id,
            direct_ownership=frame.edge.percentage if frame.edge else HUNDRED,
            effective_ownership=frame.effective,
            depth=frame.depth,
            relationship_id=frame.edge.relationship_id if frame.edge else None,
            entity=lookup.get(frame.entity_id),
            children=tuple(frame.children),
            truncated=frame.truncated,
        )

    root, truncated, warnings = _walk(
        root_id, edges_by_parent, lambda e: e.child_id, build, "down"
    )
    return TraversalResult(root=root, truncated=truncated, warnings=tuple(warnings))


@traced_engine("ownership_graph", "1.0", fingerprint_fields=("entity_id", "edges_by_child"))
def build_ownership_chain(
    *,
    entity_id: str,
    edges_by_child: Mapping[str, Sequence[OwnershipEdge]],
    entities: Mapping[str, Entity] | None = None,
) -> ChainResult:
    """Expand every edge upward from ``entity_id`` (the dual of the tree)."""
    lookup = entities or {}

    def build(frame: _Frame) -> ChainNode:
        return ChainNode(
            entity_id=frame.entity_id,
            direct_ownership=frame.edge.percentage if frame.edge else HUNDRED,
            effective_interest=frame.effective,
            depth=frame.depth,
            relationship_id=frame.edge.relationship_id if frame.edge else None,
            entity=lookup.get(frame.entity_id),
            owners=tuple(frame.children),
            truncated=frame.truncated,
        )

    start, truncated, warnings = _walk(
        entity_id, edges_by_child, lambda e: e.parent_id, build, "up"
    )
    return ChainResult(start=start, truncated=truncated, warnings=tuple(warnings))


# =============================================================================
# Aggregation
# =============================================================================


def iter_tree(root: ConsolidationNode) -> Iterator[ConsolidationNode]:
    """Preorder walk of a subsidiary tree (root first, children in order)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def iter_chain(start: ChainNode) -> Iterator[ChainNode]:
    """Preorder walk of an ownership chain, excluding the start entity."""
    stack = list(reversed(start.owners))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.owners))


def effective_interest(chain: ChainResult, owner_id: str) -> Decimal:
    """Sum ``owner_id``'s look-through interest across every upward path."""
    return sum(
        (node.effective_interest for node in iter_chain(chain.start) if node.entity_id == owner_id),
        Decimal("0"),
    )


@traced_engine("ownership_graph", "1.0")
def flatten_tree(root: ConsolidationNode) -> list[FlattenedShare]:
    """
    Collapse a tree into one row per entity, in first-seen preorder.

    Per entity: effective ownership is summed over every path reaching it;
    direct ownership sums the distinct in-group edges into it; depth is the
    shallowest occurrence; path_count counts occurrences.
    """
    order: list[str] = []
    effective: dict[str, Decimal] = {}
    edges: dict[str, dict[str, Decimal]] = {}
    depth: dict[str, int] = {}
    paths: dict[str, int] = {}

    for node in iter_tree(root):
        eid = node.entity_id
        if eid not in effective:
            order.append(eid)
            effective[eid] = Decimal("0")
            edges[eid] = {}
            depth[eid] = node.depth
            paths[eid] = 0
        effective[eid] += node.effective_ownership
        depth[eid] = min(depth[eid], node.depth)
        paths[eid] += 1
        if node.relationship_id is not None:
            edges[eid][node.relationship_id] = node.direct_ownership

    shares = []
    for eid in order:
        direct = HUNDRED if eid == root.entity_id else sum(edges[eid].values(), Decimal("0"))
        shares.append(
            FlattenedShare(
                entity_id=eid,
                direct_ownership=direct,
                effective_ownership=effective[eid],
                depth=depth[eid],
                path_count=paths[eid],
            )
        )
    return shares
