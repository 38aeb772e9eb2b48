from __future__ import annotations

import logging

from .dialects import PLAN_SUMMARY_RE, Dialect, detect_dialect
from .normalizer import normalize_output
from .types import ResourceChanges

logger = logging.getLogger(__name__)


def _contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def _count_by_phrases(lines: list[str], dialect: Dialect) -> ResourceChanges:
    # One category per line, most specific first.
    changes = ResourceChanges()
    for line in lines:
        lower = line.lower()
        if _contains_any(lower, dialect.replace_phrases):
            changes.to_replace += 1
        elif _contains_any(lower, dialect.destroy_phrases):
            changes.to_destroy += 1
        elif _contains_any(lower, dialect.create_phrases):
            changes.to_add += 1
        elif _contains_any(lower, dialect.update_phrases):
            changes.to_change += 1
        elif _contains_any(lower, dialect.import_phrases):
            changes.to_import += 1
        elif _contains_any(lower, dialect.move_phrases):
            changes.to_move += 1
    return changes


def parse_resource_changes(output: str, dialect: Dialect | None = None) -> ResourceChanges:
    """Tally planned resource changes from a planner transcript.

    The summary line is authoritative. Without it the counts come from
    scanning "will be created"-style annotations, which is only an
    approximation for multi-line resource blocks.
    """
    cleaned = normalize_output(output)
    dialect = dialect or detect_dialect(cleaned)
    lower = cleaned.lower()

    if _contains_any(lower, dialect.no_op_phrases):
        return ResourceChanges(no_changes=True)

    match = PLAN_SUMMARY_RE.search(cleaned)
    if match:
        changes = ResourceChanges(
            to_add=int(match.group("add")),
            to_change=int(match.group("change")),
            to_destroy=int(match.group("destroy")),
            to_replace=int(match.group("replace") or 0),
            to_import=int(match.group("import") or 0),
        )
    else:
        changes = _count_by_phrases(cleaned.split("\n"), dialect)
        if changes.total() or changes.to_import or changes.to_move:
            logger.debug("Plan summary line missing; using heuristic counts %s", changes)

    counted = changes.total() + changes.to_import + changes.to_move
    if counted == 0 and not _contains_any(lower, dialect.pending_phrases):
        # Unrecognized output is reported as "no changes" rather than unknown.
        changes.no_changes = True
    return changes
