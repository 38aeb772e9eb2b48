from __future__ import annotations

import logging
from pathlib import Path

from .schemas import ActionOutputs
from .types import RunTotals

logger = logging.getLogger(__name__)

DESTROY_WARNING_THRESHOLD = 10
LARGE_CHANGE_THRESHOLD = 50


def build_action_outputs(totals: RunTotals) -> ActionOutputs:
    return ActionOutputs(
        success=totals.success,
        total_resources_to_add=totals.changes.to_add,
        total_resources_to_change=totals.changes.to_change,
        total_resources_to_destroy=totals.changes.to_destroy,
        total_resources_to_replace=totals.changes.to_replace,
    )


def risk_warnings(totals: RunTotals) -> list[str]:
    warnings: list[str] = []
    changes = totals.changes
    if changes.to_destroy > DESTROY_WARNING_THRESHOLD:
        warnings.append(f"High destruction risk: {changes.to_destroy} resources")
    if changes.total() > LARGE_CHANGE_THRESHOLD:
        warnings.append(f"Large changes: {changes.total()} total resources")
    return warnings


def write_action_outputs(path: str | Path | None, totals: RunTotals) -> list[str]:
    """Append key=value outputs for later workflow steps; returns risk warnings."""
    outputs = build_action_outputs(totals)
    if path:
        target = Path(path)
        with target.open("a", encoding="utf-8") as handle:
            for line in outputs.as_lines():
                handle.write(line + "\n")
        logger.debug("Wrote action outputs to %s", target)
    return risk_warnings(totals)
