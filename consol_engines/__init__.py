"""
Consolidation Engines - Pure calculation functions.

Module: consol_engines
Responsibility: Stateless calculation over data the caller has already
    loaded: ownership-graph traversal and look-through interest, account-name
    normalization and similarity.
Architecture position: Engines layer -- imports only consol_kernel domain
    types and logging.  No repositories, no sessions, no clock.

Invariants:
    - Deterministic: same inputs produce the same outputs.
    - Decimal arithmetic for every percentage.
    - Each public entry point is wrapped in @traced_engine.
"""

from consol_engines.name_matching import (
    NormalizationRules,
    PairMatch,
    SynonymRule,
    classify_pair,
    levenshtein_distance,
    match_accounts,
    name_similarity,
    normalize_account_name,
)
from consol_engines.ownership_graph import (
    ChainNode,
    ChainResult,
    ConsolidationNode,
    FlattenedShare,
    OwnershipEdge,
    TraversalResult,
    build_ownership_chain,
    build_subsidiary_tree,
    effective_interest,
    flatten_tree,
    iter_chain,
    iter_tree,
)

__all__ = [
    "NormalizationRules",
    "PairMatch",
    "SynonymRule",
    "classify_pair",
    "levenshtein_distance",
    "match_accounts",
    "name_similarity",
    "normalize_account_name",
    "ChainNode",
    "ChainResult",
    "ConsolidationNode",
    "FlattenedShare",
    "OwnershipEdge",
    "TraversalResult",
    "build_ownership_chain",
    "build_subsidiary_tree",
    "effective_interest",
    "flatten_tree",
    "iter_chain",
    "iter_tree",
]
