"""
Account Ledger Reader (``consol_modules.ledger.service``).

Responsibility
--------------
Read one entity's chart of accounts: filtered listings, a trial balance
grouped by statement section, headline summary figures, and the account
lifecycle operations (deactivate, guarded hard delete).

Architecture position
---------------------
**Modules layer** -- leaf component.  Reads through the injected
``EntityRepository`` and ``AccountRepository``; consumed by the duplicate
detector and the consolidation engine.

Invariants enforced
-------------------
* Trial balances and summaries include active accounts only.
* Header accounts never enter totals.
* The debit/credit side of each account type comes from
  ``TrialBalanceConfig``.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown entity id.
* ``AccountNotFoundError`` -- unknown account id.
* ``SystemTemplateImmutableError`` -- hard delete of a template-derived
  account.
"""

from __future__ import annotations

from decimal import Decimal

from consol_config.schema import TrialBalanceConfig
from consol_kernel.domain.entities import Account, AccountType
from consol_kernel.logging_config import get_logger
from consol_kernel.repositories.base import AccountRepository, EntityRepository
from consol_modules.ledger.models import (
    SECTION_KEYS,
    AccountSummary,
    TrialBalance,
    TrialBalanceTotals,
    empty_sections,
)

logger = get_logger("modules.ledger.service")

_ZERO = Decimal("0")


def _sum(accounts: list[Account]) -> Decimal:
    return sum((a.current_balance for a in accounts), _ZERO)


class AccountLedgerReader:
    """
    Single-entity chart-of-accounts reader.

    Contract
    --------
    * Every read verifies the entity exists first, so a missing entity is
      reported as ``EntityNotFoundError`` rather than an empty result.

    Non-goals
    ---------
    * Does not post journal entries or recompute balances;
      ``current_balance`` is taken as stored.
    """

    def __init__(
        self,
        entities: EntityRepository,
        accounts: AccountRepository,
        config: TrialBalanceConfig | None = None,
    ):
        self._entities = entities
        self._accounts = accounts
        self._config = config or TrialBalanceConfig()

    @property
    def config(self) -> TrialBalanceConfig:
        return self._config

    def get_accounts(
        self,
        entity_id: str,
        active_only: bool = False,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        """Accounts for ``entity_id`` ordered by account number."""
        self._entities.get(entity_id)
        return self._accounts.list(
            entity_id, active_only=active_only, account_type=account_type
        )

    def get_account(self, account_id: str) -> Account:
        return self._accounts.get(account_id)

    def get_trial_balance(self, entity_id: str) -> TrialBalance:
        entity = self._entities.get(entity_id)
        accounts = self._accounts.list(entity_id, active_only=True)

        sections = empty_sections()
        debits = _ZERO
        credits = _ZERO
        for acct in accounts:
            sections[SECTION_KEYS[acct.account_type]].append(acct)
            if acct.is_header:
                continue
            if self._config.is_debit(acct.account_type):
                debits += acct.current_balance
            else:
                credits += acct.current_balance

        logger.debug(
            "trial_balance_built",
            extra={
                "entity_id": entity_id,
                "account_count": len(accounts),
                "total_debits": str(debits),
                "total_credits": str(credits),
            },
        )
        return TrialBalance(
            entity_id=entity.id,
            entity_name=entity.name,
            accounts_by_type={k: tuple(v) for k, v in sections.items()},
            totals=TrialBalanceTotals(total_debits=debits, total_credits=credits),
        )

    def get_summary(self, entity_id: str) -> AccountSummary:
        self._entities.get(entity_id)
        detail = [a for a in self._accounts.list(entity_id, active_only=True) if not a.is_header]

        def of(*types: AccountType) -> list[Account]:
            return [a for a in detail if a.account_type in types]

        assets = _sum(of(AccountType.ASSET))
        liabilities = _sum(of(AccountType.LIABILITY))
        revenue = _sum(of(AccountType.REVENUE))
        expenses = _sum(of(AccountType.EXPENSE, AccountType.COGS, AccountType.OTHER_EXPENSE))

        return AccountSummary(
            entity_id=entity_id,
            total_assets=assets,
            total_liabilities=liabilities,
            total_equity=_sum(of(AccountType.EQUITY)),
            total_revenue=revenue,
            total_expenses=expenses,
            net_income=revenue - expenses,
            net_worth=assets - liabilities,
            account_count=len(detail),
        )

    def deactivate_account(self, account_id: str) -> Account:
        """Soft delete: the account stays on file with ``is_active=False``."""
        account = self._accounts.delete(account_id, hard=False)
        logger.info(
            "account_deactivated",
            extra={"account_id": account_id, "entity_id": account.entity_id},
        )
        return account

    def delete_account(self, account_id: str, hard: bool = False) -> Account:
        """Deactivate by default; ``hard=True`` removes the row if allowed."""
        account = self._accounts.delete(account_id, hard=hard)
        logger.info(
            "account_deleted",
            extra={
                "account_id": account_id,
                "entity_id": account.entity_id,
                "hard": hard,
            },
        )
        return account
