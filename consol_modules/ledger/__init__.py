"""Account Ledger Reader: single-entity chart-of-accounts reads."""

from consol_modules.ledger.models import (
    SECTION_KEYS,
    AccountSummary,
    TrialBalance,
    TrialBalanceTotals,
)
from consol_modules.ledger.service import AccountLedgerReader

__all__ = [
    "SECTION_KEYS",
    "AccountLedgerReader",
    "AccountSummary",
    "TrialBalance",
    "TrialBalanceTotals",
]
