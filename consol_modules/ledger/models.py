"""
Account Ledger Domain Models (``consol_modules.ledger.models``).

Responsibility
--------------
Frozen result objects for single-entity chart-of-accounts reads: the
trial balance grouped by statement section and the account summary.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Header accounts are listed in their section but never enter a total.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from consol_kernel.domain.entities import Account, AccountType

# Statement section key for every account type, in presentation order.
SECTION_KEYS: dict[AccountType, str] = {
    AccountType.ASSET: "assets",
    AccountType.LIABILITY: "liabilities",
    AccountType.EQUITY: "equity",
    AccountType.REVENUE: "revenue",
    AccountType.COGS: "cogs",
    AccountType.EXPENSE: "expenses",
    AccountType.OTHER_INCOME: "other_income",
    AccountType.OTHER_EXPENSE: "other_expense",
}


def empty_sections() -> dict[str, list]:
    return {key: [] for key in SECTION_KEYS.values()}


@dataclass(frozen=True)
class TrialBalanceTotals:
    total_debits: Decimal = Decimal("0")
    total_credits: Decimal = Decimal("0")

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


@dataclass(frozen=True)
class TrialBalance:
    """One entity's active accounts by section, with debit/credit totals."""

    entity_id: str
    entity_name: str
    accounts_by_type: dict[str, tuple[Account, ...]] = field(default_factory=dict)
    totals: TrialBalanceTotals = field(default_factory=TrialBalanceTotals)

    @property
    def accounts(self) -> list[Account]:
        return [acct for section in self.accounts_by_type.values() for acct in section]


@dataclass(frozen=True)
class AccountSummary:
    """
    Headline figures for one entity (active, non-header accounts).

    ``total_revenue`` is the revenue section only; other income is not
    folded in.  ``total_expenses`` covers expense, cogs and other_expense.
    """

    entity_id: str
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    net_worth: Decimal
    account_count: int
