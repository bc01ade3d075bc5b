"""Intercompany transaction classification and elimination entries."""

from consol_modules.intercompany.models import (
    EliminationBatch,
    EliminationEntry,
    EliminationResult,
    IntercompanySuggestion,
    IntercompanyTransaction,
)
from consol_modules.intercompany.service import IntercompanyClassifier

__all__ = [
    "EliminationBatch",
    "EliminationEntry",
    "EliminationResult",
    "IntercompanyClassifier",
    "IntercompanySuggestion",
    "IntercompanyTransaction",
]
