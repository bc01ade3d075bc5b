"""Duplicate-alert review workflow."""

from __future__ import annotations

from consol_kernel.domain.alerts import AlertStatus
from consol_kernel.domain.workflow import Transition, Workflow

_PENDING = AlertStatus.PENDING.value

DUPLICATE_ALERT_WORKFLOW = Workflow(
    name="duplicate_alert",
    description="Review of a suspected duplicate account pair",
    initial_state=_PENDING,
    states=tuple(s.value for s in AlertStatus),
    transitions=(
        Transition(_PENDING, AlertStatus.CONFIRMED.value, action="confirm"),
        Transition(_PENDING, AlertStatus.DISMISSED.value, action="dismiss"),
        Transition(_PENDING, AlertStatus.MERGED.value, action="merge"),
    ),
    terminal_states=(
        AlertStatus.CONFIRMED.value,
        AlertStatus.DISMISSED.value,
        AlertStatus.MERGED.value,
    ),
)
