"""
consol_engines.name_matching -- Account-name normalization and fuzzy matching.

Responsibility:
    Decide whether two general-ledger accounts from related entities are
    probably the same account: by identical account number, by identical
    normalized name, or by a normalized-name similarity ratio at or above a
    threshold.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Normalization rules are
    passed in as ``NormalizationRules`` (built from configuration by
    ``consol_config``); nothing here reads files.

Invariants enforced:
    - ``name_similarity`` is symmetric and lies in [0, 1].
    - Identical normalized names always score 1.0.
    - A length difference above ``length_cutoff`` of the longer name scores 0
      without computing the edit distance.

Failure modes:
    None.  Empty names normalize to "" and only match other empty names.

Usage:
    from consol_engines.name_matching import classify_pair, NormalizationRules

    match = classify_pair(
        number_a="2110", name_a="Trade Payables",
        number_b="2100", name_b="Accounts Payable - Trade",
        rules=NormalizationRules.standard(), threshold=0.75,
    )
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from consol_engines.tracer import traced_engine
from consol_kernel.domain.alerts import MatchType
from consol_kernel.domain.entities import Account

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SynonymRule:
    """Rewrite every match of ``pattern`` in a normalized name to ``replacement``."""

    pattern: str
    replacement: str
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # re.error propagates to the config loader
        object.__setattr__(self, "_compiled", re.compile(self.pattern))

    def apply(self, text: str) -> str:
        return self._compiled.sub(self.replacement, text)


@dataclass(frozen=True)
class NormalizationRules:
    """
    Everything ``normalize_account_name`` needs beyond the fixed
    lowercase / strip-punctuation / collapse-whitespace steps.

    Synonyms are applied in order, so multi-word rules ("accounts payable")
    must precede their single-word fallbacks ("payable").
    """

    leading_articles: tuple[str, ...] = ("the", "a", "an")
    trailing_suffixes: tuple[str, ...] = ("account", "acct", "acc")
    synonyms: tuple[SynonymRule, ...] = ()
    sort_tokens: bool = True

    @classmethod
    def standard(cls) -> NormalizationRules:
        return cls(
            synonyms=(
                SynonymRule(r"\baccounts? receivable\b", "ar"),
                SynonymRule(r"\baccounts? payable\b", "ap"),
                SynonymRule(r"\baccumulated depreciation\b", "accum depr"),
                SynonymRule(r"\bwork in progress\b", "wip"),
                SynonymRule(r"\bconstruction in progress\b", "cip"),
                SynonymRule(r"\breceivables?\b", "ar"),
                SynonymRule(r"\bpayables?\b", "ap"),
            ),
        )


@dataclass(frozen=True)
class PairMatch:
    """Outcome of comparing two accounts."""

    match_type: MatchType
    confidence: float


def normalize_account_name(name: str, rules: NormalizationRules) -> str:
    """
    Canonical comparison form of an account name.

    Lowercase, drop punctuation, collapse whitespace, drop one leading
    article and one trailing account-suffix word, apply synonym rewrites,
    then (optionally) sort the tokens.
    """
    text = _NON_ALNUM.sub("", name.lower())
    text = _WHITESPACE.sub(" ", text).strip()

    tokens = text.split(" ") if text else []
    if len(tokens) > 1 and tokens[0] in rules.leading_articles:
        tokens = tokens[1:]
    if len(tokens) > 1 and tokens[-1] in rules.trailing_suffixes:
        tokens = tokens[:-1]
    text = " ".join(tokens)

    for rule in rules.synonyms:
        text = rule.apply(text)
    text = _WHITESPACE.sub(" ", text).strip()

    if rules.sort_tokens and text:
        text = " ".join(sorted(text.split(" ")))
    return text


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute each cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str, length_cutoff: float = 0.5) -> float:
    """``1 - distance / longer_length`` over already-normalized names."""
    if a == b:
        return 1.0
    longer = max(len(a), len(b))
    if abs(len(a) - len(b)) > longer * length_cutoff:
        return 0.0
    return 1.0 - levenshtein_distance(a, b) / longer


def classify_pair(
    *,
    number_a: str,
    name_a: str,
    number_b: str,
    name_b: str,
    rules: NormalizationRules,
    threshold: float,
    length_cutoff: float = 0.5,
) -> PairMatch | None:
    """
    Classify two accounts, or return None when they do not match.

    - same number: ``exact_number`` at 1.0, upgraded to ``exact_match``
      when the normalized names are also identical;
    - different numbers, identical normalized names: ``similar_name`` at 1.0;
    - otherwise ``similar_name`` at the similarity ratio when it reaches
      ``threshold``.
    """
    return _classify_normalized(
        number_a,
        normalize_account_name(name_a, rules),
        number_b,
        normalize_account_name(name_b, rules),
        threshold,
        length_cutoff,
    )


def _classify_normalized(
    number_a: str,
    norm_a: str,
    number_b: str,
    norm_b: str,
    threshold: float,
    length_cutoff: float,
) -> PairMatch | None:
    same_name = norm_a == norm_b

    if number_a == number_b:
        if same_name:
            return PairMatch(MatchType.EXACT_MATCH, 1.0)
        return PairMatch(MatchType.EXACT_NUMBER, 1.0)
    if same_name:
        return PairMatch(MatchType.SIMILAR_NAME, 1.0)

    similarity = name_similarity(norm_a, norm_b, length_cutoff)
    if similarity >= threshold:
        return PairMatch(MatchType.SIMILAR_NAME, similarity)
    return None


@traced_engine("name_matching", "1.0", fingerprint_fields=("accounts_a", "accounts_b", "threshold"))
def match_accounts(
    *,
    accounts_a: Sequence[Account],
    accounts_b: Sequence[Account],
    rules: NormalizationRules,
    threshold: float,
    length_cutoff: float = 0.5,
) -> list[tuple[Account, Account, PairMatch]]:
    """
    Compare every account in ``accounts_a`` with every account in
    ``accounts_b``; return the matching pairs in input order.

    Each name is normalized once.
    """
    normalized_b = [(acct, normalize_account_name(acct.account_name, rules)) for acct in accounts_b]
    pairs: list[tuple[Account, Account, PairMatch]] = []
    for acct_a in accounts_a:
        norm_a = normalize_account_name(acct_a.account_name, rules)
        for acct_b, norm_b in normalized_b:
            match = _classify_normalized(
                acct_a.account_number, norm_a,
                acct_b.account_number, norm_b,
                threshold, length_cutoff,
            )
            if match is not None:
                pairs.append((acct_a, acct_b, match))
    return pairs
