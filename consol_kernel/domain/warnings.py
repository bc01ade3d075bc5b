"""
Consolidation warnings (``consol_kernel.domain.warnings``).

Traversal anomalies and skipped entities degrade a result instead of
aborting it.  They travel as ``ConsolidationWarning`` values attached to the
result they affected and are also logged at WARNING by whoever produced them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WarningCode(str, Enum):
    CYCLE_DETECTED = "CYCLE_DETECTED"
    PARTIAL_CONSOLIDATION = "PARTIAL_CONSOLIDATION"
    ACCOUNT_TYPE_CONFLICT = "ACCOUNT_TYPE_CONFLICT"
    HEADER_CONFLICT = "HEADER_CONFLICT"


@dataclass(frozen=True)
class ConsolidationWarning:
    """A non-fatal anomaly observed while building a result."""

    code: WarningCode
    message: str
    entity_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
