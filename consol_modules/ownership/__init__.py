"""
Ownership graph: validated relationship writes and look-through resolution.

``OwnershipGraphStore`` guards the per-child 100% ceiling;
``OwnershipResolver`` produces subsidiary trees and ownership chains.
"""

from consol_engines.ownership_graph import (
    ChainNode,
    ChainResult,
    ConsolidationNode,
    TraversalResult,
)
from consol_modules.ownership.service import OwnershipGraphStore, OwnershipResolver

__all__ = [
    "ChainNode",
    "ChainResult",
    "ConsolidationNode",
    "OwnershipGraphStore",
    "OwnershipResolver",
    "TraversalResult",
]
