"""
Consolidation Engine (``consol_modules.consolidation.service``).

Responsibility
--------------
Produce the consolidated view of a group rooted at one entity: the
ownership tree, the flattened group, an ownership-weighted trial balance
merged by account number, a summary projected from it, and the elimination
entries for the group's pending intercompany transactions.

Architecture position
---------------------
**Modules layer** -- orchestrator.  Composes ``OwnershipResolver``,
``AccountLedgerReader`` and ``IntercompanyClassifier``; holds no state
beyond one request.

Invariants enforced
-------------------
* Every balance is scaled by ``effective_ownership / 100`` with no
  intermediate rounding.
* An entity reached along several paths contributes once, at the sum of
  its path interests.
* Header rows are listed but never totaled.  A number that is a header in
  one entity and a posting account in another yields two lines and a
  ``HEADER_CONFLICT`` warning.
* Pending eliminations are reported separately and never subtracted.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown root.
* A group entity whose ledger cannot be read is skipped and reported as a
  ``PARTIAL_CONSOLIDATION`` warning; the result is still returned.
* Elimination runs skip group members that no longer exist the same way
  and list them on ``EliminationBatch.excluded_entities``.

Audit relevance
---------------
Every consolidation binds ``root_entity_id`` into the log context, so all
records of one run, engine traces included, can be correlated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from consol_engines.ownership_graph import TraversalResult, flatten_tree
from consol_kernel.domain.clock import Clock, SystemClock
from consol_kernel.domain.entities import HUNDRED, Account, AccountType
from consol_kernel.domain.warnings import ConsolidationWarning, WarningCode
from consol_kernel.exceptions import DataAccessError, NotFoundError
from consol_kernel.logging_config import LogContext, get_logger
from consol_kernel.repositories.base import EntityRepository
from consol_modules.consolidation.models import (
    ConsolidatedAccount,
    ConsolidatedSummary,
    ConsolidatedTotals,
    ConsolidatedTrialBalance,
    ConsolidationGroup,
    EntityContribution,
    GroupMember,
)
from consol_modules.intercompany.models import EliminationBatch
from consol_modules.intercompany.service import IntercompanyClassifier
from consol_modules.ledger.models import SECTION_KEYS, empty_sections
from consol_modules.ledger.service import AccountLedgerReader
from consol_modules.ownership.service import OwnershipResolver

logger = get_logger("modules.consolidation.service")

_ZERO = Decimal("0")


@dataclass
class _Line:
    """Mutable accumulator for one account number while merging."""

    account_number: str
    account_name: str
    account_type: AccountType
    is_header: bool
    balance: Decimal = _ZERO
    contributions: list[EntityContribution] = field(default_factory=list)

    def freeze(self) -> ConsolidatedAccount:
        return ConsolidatedAccount(
            account_number=self.account_number,
            account_name=self.account_name,
            account_type=self.account_type,
            is_header=self.is_header,
            consolidated_balance=self.balance,
            contributions=tuple(self.contributions),
        )


class ConsolidationEngine:
    """
    Group consolidation over the ownership graph.

    Contract
    --------
    * ``root_id`` must exist; every other entity is reached through active
      ``ownership`` relationships as of the clock's today.
    * Results carry the traversal's warnings (cycles) plus any
      consolidation warnings (skipped ledgers, account-type conflicts).

    Non-goals
    ---------
    * Does not post elimination entries; it generates them for review.
    * Does not translate currencies.
    """

    def __init__(
        self,
        resolver: OwnershipResolver,
        ledger_reader: AccountLedgerReader,
        classifier: IntercompanyClassifier,
        entities: EntityRepository,
        clock: Clock | None = None,
    ):
        self._resolver = resolver
        self._ledger = ledger_reader
        self._classifier = classifier
        self._entities = entities
        self._clock = clock or SystemClock()

    # =========================================================================
    # Ownership views
    # =========================================================================

    def get_consolidated_ownership(
        self, root_id: str, as_of: date | None = None
    ) -> TraversalResult:
        return self._resolver.get_subsidiary_tree(root_id, as_of=as_of)

    def get_consolidation_group(
        self, root_id: str, as_of: date | None = None
    ) -> ConsolidationGroup:
        """Flatten the subsidiary tree into one member per entity, preorder."""
        tree = self.get_consolidated_ownership(root_id, as_of=as_of)
        members = []
        for share in flatten_tree(tree.root):
            try:
                entity = self._entities.get(share.entity_id)
            except NotFoundError:
                entity = None
            members.append(
                GroupMember(
                    entity_id=share.entity_id,
                    entity_name=entity.name if entity else None,
                    entity_purpose=entity.entity_purpose if entity else None,
                    project_type=entity.project_type if entity else None,
                    direct_ownership=share.direct_ownership,
                    effective_ownership=share.effective_ownership,
                    depth=share.depth,
                    path_count=share.path_count,
                )
            )
        return ConsolidationGroup(
            root_entity_id=root_id,
            members=tuple(members),
            truncated=tree.truncated,
            warnings=tree.warnings,
        )

    # =========================================================================
    # Trial balance
    # =========================================================================

    def get_consolidated_trial_balance(
        self,
        root_id: str,
        include_eliminations: bool = True,
    ) -> ConsolidatedTrialBalance:
        """
        Ownership-weighted trial balance for the group rooted at ``root_id``.

        Steps:
            1. Resolve and flatten the group.
            2. Read each member's active accounts; skip members whose
               ledger cannot be read.
            3. Scale each balance by effective ownership / 100 and merge by
               account number, keeping each entity's contribution.
            4. Optionally list the group's pending intercompany
               transactions and total them as ``pending_eliminations``.
            5. Total debits and credits over non-header lines.
        """
        with LogContext.bind(root_entity_id=root_id):
            logger.info(
                "consolidation_started",
                extra={"include_eliminations": include_eliminations},
            )
            group = self.get_consolidation_group(root_id)
            warnings: list[ConsolidationWarning] = list(group.warnings)

            ledgers, excluded = self._read_ledgers(group, warnings)
            lines = self._merge(group, ledgers, warnings)

            sections = empty_sections()
            for line in sorted(
                lines.values(), key=lambda ln: (ln.account_number, not ln.is_header)
            ):
                sections[SECTION_KEYS[line.account_type]].append(line.freeze())

            debits = _ZERO
            credits = _ZERO
            for line in lines.values():
                if line.is_header:
                    continue
                if self._ledger.config.is_debit(line.account_type):
                    debits += line.balance
                else:
                    credits += line.balance

            eliminations = ()
            if include_eliminations and ledgers:
                eliminations = tuple(
                    txn
                    for txn in self._classifier.detect_intercompany_transactions(list(ledgers))
                    if txn.is_pending
                )
            pending = sum((txn.amount for txn in eliminations), _ZERO)

            result = ConsolidatedTrialBalance(
                root_entity_id=root_id,
                group=group,
                accounts_by_type={k: tuple(v) for k, v in sections.items()},
                totals=ConsolidatedTotals(
                    total_debits=debits,
                    total_credits=credits,
                    pending_eliminations=pending,
                ),
                eliminations=eliminations,
                entity_count=len(ledgers),
                warnings=tuple(warnings),
                excluded_entities=tuple(excluded),
            )
            logger.info(
                "consolidation_completed",
                extra={
                    "entity_count": result.entity_count,
                    "excluded_entities": list(excluded),
                    "account_count": len(lines),
                    "total_debits": str(debits),
                    "total_credits": str(credits),
                    "pending_eliminations": str(pending),
                    "warning_count": len(warnings),
                },
            )
            return result

    def get_consolidated_summary(self, root_id: str) -> ConsolidatedSummary:
        """Headline figures projected from the consolidated trial balance."""
        tb = self.get_consolidated_trial_balance(root_id, include_eliminations=True)

        def section(*keys: str) -> Decimal:
            return sum(
                (
                    acct.consolidated_balance
                    for key in keys
                    for acct in tb.accounts_by_type.get(key, ())
                    if not acct.is_header
                ),
                _ZERO,
            )

        assets = section("assets")
        liabilities = section("liabilities")
        revenue = section("revenue")
        expenses = section("expenses", "cogs", "other_expense")
        return ConsolidatedSummary(
            root_entity_id=root_id,
            total_assets=assets,
            total_liabilities=liabilities,
            total_equity=section("equity"),
            total_revenue=revenue,
            total_expenses=expenses,
            net_income=revenue - expenses,
            net_worth=assets - liabilities,
            entity_count=tb.entity_count,
            pending_eliminations=tb.totals.pending_eliminations,
            warnings=tb.warnings,
        )

    # =========================================================================
    # Eliminations
    # =========================================================================

    def generate_elimination_entries(
        self, root_id: str, as_of_date: date | None = None
    ) -> EliminationBatch:
        """
        Elimination entries for the group's pending intercompany
        transactions dated on or before ``as_of_date`` (default: all).
        """
        with LogContext.bind(root_entity_id=root_id):
            group = self.get_consolidation_group(root_id, as_of=as_of_date)
            warnings: list[ConsolidationWarning] = list(group.warnings)
            reachable: list[str] = []
            excluded: list[str] = []
            for member in group.members:
                try:
                    self._entities.get(member.entity_id)
                except NotFoundError as exc:
                    excluded.append(member.entity_id)
                    self._exclude(member.entity_id, exc, warnings)
                else:
                    reachable.append(member.entity_id)

            transactions = self._classifier.detect_intercompany_transactions(
                reachable, end_date=as_of_date
            )
            batch = replace(
                self._classifier.build_elimination_entries(transactions),
                warnings=tuple(warnings),
                excluded_entities=tuple(excluded),
            )
            logger.info(
                "elimination_entries_generated",
                extra={
                    "as_of_date": as_of_date,
                    "entry_count": batch.count,
                    "total_amount": str(batch.total_amount),
                    "excluded_entities": excluded,
                },
            )
            return batch

    # =========================================================================
    # Internals
    # =========================================================================

    def _read_ledgers(
        self,
        group: ConsolidationGroup,
        warnings: list[ConsolidationWarning],
    ) -> tuple[dict[str, list[Account]], list[str]]:
        ledgers: dict[str, list[Account]] = {}
        excluded: list[str] = []
        for member in group.members:
            try:
                ledgers[member.entity_id] = self._ledger.get_accounts(
                    member.entity_id, active_only=True
                )
            except (NotFoundError, DataAccessError) as exc:
                excluded.append(member.entity_id)
                self._exclude(member.entity_id, exc, warnings)
        return ledgers, excluded

    def _exclude(
        self,
        entity_id: str,
        exc: NotFoundError | DataAccessError,
        warnings: list[ConsolidationWarning],
    ) -> None:
        logger.warning(
            "consolidation_entity_excluded",
            extra={
                "entity_id": entity_id,
                "error_code": exc.code,
                "reason": str(exc),
            },
        )
        warnings.append(
            ConsolidationWarning(
                code=WarningCode.PARTIAL_CONSOLIDATION,
                message=f"Entity {entity_id} excluded: {exc}",
                entity_id=entity_id,
                details={"error_code": exc.code, "reason": str(exc)},
            )
        )

    def _merge(
        self,
        group: ConsolidationGroup,
        ledgers: dict[str, list[Account]],
        warnings: list[ConsolidationWarning],
    ) -> dict[tuple[str, bool], _Line]:
        # Keyed by (number, is_header): header and posting rows sharing a
        # number stay on separate lines.
        lines: dict[tuple[str, bool], _Line] = {}
        header_flags: dict[str, bool] = {}
        for entity_id, accounts in ledgers.items():
            member = group.member(entity_id)
            factor = member.effective_ownership / HUNDRED
            for acct in accounts:
                first_flag = header_flags.setdefault(acct.account_number, acct.is_header)
                if acct.is_header != first_flag:
                    self._header_conflict(acct, first_flag, warnings)
                key = (acct.account_number, acct.is_header)
                line = lines.get(key)
                if line is None:
                    line = lines[key] = _Line(
                        account_number=acct.account_number,
                        account_name=acct.account_name,
                        account_type=acct.account_type,
                        is_header=acct.is_header,
                    )
                elif acct.account_type != line.account_type:
                    self._type_conflict(line, acct, warnings)

                adjusted = acct.current_balance * factor
                line.balance += adjusted
                line.contributions.append(
                    EntityContribution(
                        entity_id=entity_id,
                        entity_name=member.entity_name,
                        account_id=acct.id,
                        original_balance=acct.current_balance,
                        ownership_percentage=member.effective_ownership,
                        adjusted_balance=adjusted,
                    )
                )
        return lines

    def _header_conflict(
        self,
        acct: Account,
        first_flag: bool,
        warnings: list[ConsolidationWarning],
    ) -> None:
        kept = "header" if first_flag else "posting"
        conflicting = "header" if acct.is_header else "posting"
        logger.warning(
            "consolidation_header_conflict",
            extra={
                "account_number": acct.account_number,
                "kept_kind": kept,
                "conflicting_kind": conflicting,
                "entity_id": acct.entity_id,
            },
        )
        warnings.append(
            ConsolidationWarning(
                code=WarningCode.HEADER_CONFLICT,
                message=(
                    f"Account {acct.account_number} is a {conflicting} account "
                    f"in {acct.entity_id} but a {kept} account elsewhere; "
                    f"listed as separate lines"
                ),
                entity_id=acct.entity_id,
                details={
                    "account_number": acct.account_number,
                    "account_id": acct.id,
                    "kept_kind": kept,
                    "conflicting_kind": conflicting,
                },
            )
        )

    def _type_conflict(
        self,
        line: _Line,
        acct: Account,
        warnings: list[ConsolidationWarning],
    ) -> None:
        logger.warning(
            "consolidation_account_type_conflict",
            extra={
                "account_number": acct.account_number,
                "kept_type": line.account_type.value,
                "conflicting_type": acct.account_type.value,
                "entity_id": acct.entity_id,
            },
        )
        warnings.append(
            ConsolidationWarning(
                code=WarningCode.ACCOUNT_TYPE_CONFLICT,
                message=(
                    f"Account {acct.account_number} is {acct.account_type.value} "
                    f"in {acct.entity_id}, consolidated as {line.account_type.value}"
                ),
                entity_id=acct.entity_id,
                details={
                    "account_number": acct.account_number,
                    "account_id": acct.id,
                    "kept_type": line.account_type.value,
                    "conflicting_type": acct.account_type.value,
                },
            )
        )
