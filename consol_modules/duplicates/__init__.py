"""Duplicate account detection across related entities, with alert review."""

from consol_modules.duplicates.models import (
    AlertBatchItem,
    AlertBatchResult,
    DuplicateCandidate,
    DuplicateStats,
)
from consol_modules.duplicates.service import DuplicateAccountDetector
from consol_modules.duplicates.workflows import DUPLICATE_ALERT_WORKFLOW

__all__ = [
    "DUPLICATE_ALERT_WORKFLOW",
    "AlertBatchItem",
    "AlertBatchResult",
    "DuplicateAccountDetector",
    "DuplicateCandidate",
    "DuplicateStats",
]
