"""
Consolidation Engine Configuration Schema.

Frozen dataclasses for every tunable the engine reads: duplicate-detection
threshold and normalization rules, intercompany description patterns and
elimination labels, and the debit/credit split used by trial balances.

``with_defaults()`` builds the in-code defaults; ``from_dict()`` builds a
config from a parsed YAML document.  The packaged ``defaults.yaml`` mirrors
``with_defaults()`` exactly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Self

from consol_engines.name_matching import NormalizationRules, SynonymRule
from consol_kernel.domain.entities import AccountType
from consol_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_STANDARD_RULES = NormalizationRules.standard()

DEFAULT_INTERCOMPANY_PATTERNS: tuple[str, ...] = (
    r"transfer",
    r"intercompany",
    r"inter-company",
    r"ic\s",
    r"management fee",
    r"allocation",
    r"due to",
    r"due from",
    r"loan to",
    r"loan from",
    r"receivable from",
    r"payable to",
)


def _parse_normalization(data: dict[str, Any]) -> NormalizationRules:
    if "synonyms" in data:
        synonyms = tuple(
            SynonymRule(pattern=item["pattern"], replacement=item["replacement"])
            for item in data["synonyms"] or []
        )
    else:
        synonyms = _STANDARD_RULES.synonyms
    return NormalizationRules(
        leading_articles=tuple(data.get("leading_articles", _STANDARD_RULES.leading_articles)),
        trailing_suffixes=tuple(data.get("trailing_suffixes", _STANDARD_RULES.trailing_suffixes)),
        synonyms=synonyms,
        sort_tokens=bool(data.get("sort_tokens", _STANDARD_RULES.sort_tokens)),
    )


@dataclass(frozen=True)
class DuplicateDetectionConfig:
    """
    Tunables for duplicate-account detection.

    ``threshold`` is the minimum similarity for a ``similar_name`` match;
    ``length_cutoff`` is the relative length difference above which two
    names score 0 without an edit-distance computation.
    """

    threshold: float = 0.75
    length_cutoff: float = 0.5
    normalization: NormalizationRules = field(default_factory=NormalizationRules.standard)

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {self.threshold}")
        if not 0.0 <= self.length_cutoff <= 1.0:
            raise ValueError(f"length_cutoff must be in [0, 1], got {self.length_cutoff}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        try:
            normalization = _parse_normalization(data.get("normalization", {}))
        except re.error as exc:
            raise ValueError(f"Invalid synonym pattern: {exc}") from exc
        return cls(
            threshold=float(data.get("threshold", 0.75)),
            length_cutoff=float(data.get("length_cutoff", 0.5)),
            normalization=normalization,
        )


@dataclass(frozen=True)
class IntercompanyConfig:
    """
    Intercompany heuristics and elimination labels.

    Description patterns are case-insensitive regular expressions searched
    anywhere in a journal entry description.
    """

    description_patterns: tuple[str, ...] = DEFAULT_INTERCOMPANY_PATTERNS
    elimination_debit_account: str = "Intercompany Payable (elimination)"
    elimination_credit_account: str = "Intercompany Receivable (elimination)"
    _compiled: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        compiled = []
        for pattern in self.description_patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as exc:
                raise ValueError(f"Invalid intercompany pattern {pattern!r}: {exc}") from exc
        object.__setattr__(self, "_compiled", tuple(compiled))
        if not self.elimination_debit_account or not self.elimination_credit_account:
            raise ValueError("elimination account labels cannot be empty")

    def matching_pattern(self, description: str) -> str | None:
        """First pattern found in ``description``, or None."""
        for source, regex in zip(self.description_patterns, self._compiled):
            if regex.search(description):
                return source
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        defaults = cls()
        return cls(
            description_patterns=tuple(
                data.get("description_patterns", defaults.description_patterns)
            ),
            elimination_debit_account=data.get(
                "elimination_debit_account", defaults.elimination_debit_account
            ),
            elimination_credit_account=data.get(
                "elimination_credit_account", defaults.elimination_credit_account
            ),
        )


@dataclass(frozen=True)
class TrialBalanceConfig:
    """
    Which account types total as debits and which as credits.

    Every account type must appear on exactly one side.
    """

    debit_types: tuple[AccountType, ...] = (
        AccountType.ASSET,
        AccountType.EXPENSE,
        AccountType.COGS,
        AccountType.OTHER_EXPENSE,
    )
    credit_types: tuple[AccountType, ...] = (
        AccountType.LIABILITY,
        AccountType.EQUITY,
        AccountType.REVENUE,
        AccountType.OTHER_INCOME,
    )

    def __post_init__(self) -> None:
        overlap = set(self.debit_types) & set(self.credit_types)
        if overlap:
            raise ValueError(
                f"Account types on both sides: {sorted(t.value for t in overlap)}"
            )
        missing = set(AccountType) - set(self.debit_types) - set(self.credit_types)
        if missing:
            raise ValueError(
                f"Account types not classified: {sorted(t.value for t in missing)}"
            )

    def is_debit(self, account_type: AccountType) -> bool:
        return account_type in self.debit_types

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        defaults = cls()
        try:
            debit = tuple(AccountType(t) for t in data.get("debit_types", defaults.debit_types))
            credit = tuple(AccountType(t) for t in data.get("credit_types", defaults.credit_types))
        except ValueError as exc:
            raise ValueError(f"Unknown account type in trial_balance: {exc}") from exc
        return cls(debit_types=debit, credit_types=credit)


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration root for the consolidation engine.

    Obtain it through ``consol_config.get_active_config()``; construct it
    directly only in tests.
    """

    duplicate_detection: DuplicateDetectionConfig = field(default_factory=DuplicateDetectionConfig)
    intercompany: IntercompanyConfig = field(default_factory=IntercompanyConfig)
    trial_balance: TrialBalanceConfig = field(default_factory=TrialBalanceConfig)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("engine_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a parsed YAML document."""
        logger.info(
            "engine_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(
            duplicate_detection=DuplicateDetectionConfig.from_dict(
                data.get("duplicate_detection") or {}
            ),
            intercompany=IntercompanyConfig.from_dict(data.get("intercompany") or {}),
            trial_balance=TrialBalanceConfig.from_dict(data.get("trial_balance") or {}),
        )
