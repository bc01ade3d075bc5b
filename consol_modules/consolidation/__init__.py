"""
Group consolidation: ownership-weighted trial balances and summaries.

``ConsolidationEngine`` composes the ownership resolver, the ledger reader
and the intercompany classifier.
"""

from consol_modules.consolidation.models import (
    ConsolidatedAccount,
    ConsolidatedSummary,
    ConsolidatedTotals,
    ConsolidatedTrialBalance,
    ConsolidationGroup,
    EntityContribution,
    GroupMember,
)
from consol_modules.consolidation.service import ConsolidationEngine

__all__ = [
    "ConsolidatedAccount",
    "ConsolidatedSummary",
    "ConsolidatedTotals",
    "ConsolidatedTrialBalance",
    "ConsolidationEngine",
    "ConsolidationGroup",
    "EntityContribution",
    "GroupMember",
]
