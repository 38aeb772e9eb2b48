from __future__ import annotations

import enum
import logging

from .dialects import Dialect, detect_dialect
from .normalizer import normalize_output

logger = logging.getLogger(__name__)

NO_CHANGES_MESSAGE = "No changes detected."
NO_PRINTABLE_OUTPUT_MESSAGE = "(no printable output)"
FALLBACK_TAIL_LINES = 50


class ExtractState(enum.Enum):
    SEEKING = "seeking"
    CAPTURING = "capturing"
    DONE = "done"
    IN_OUTPUTS_SECTION = "in_outputs_section"


class PlanOutputExtractor:
    """Reduce a planner transcript to the actions, the summary line and the outputs diff.

    Lines are kept byte-for-byte (after escape removal) because the
    indentation of the resource diff is what makes it readable in a comment.
    """

    def __init__(self, dialect: Dialect | None = None, tail_lines: int = FALLBACK_TAIL_LINES):
        self.dialect = dialect
        self.tail_lines = tail_lines

    def extract(self, raw: str) -> str:
        cleaned = normalize_output(raw)
        dialect = self.dialect or detect_dialect(cleaned)
        lines = cleaned.split("\n")

        captured: list[str] = []
        state = ExtractState.SEEKING

        for line in lines:
            trimmed = line.strip()
            lower = trimmed.lower()

            if any(phrase in lower for phrase in dialect.no_op_phrases):
                return NO_CHANGES_MESSAGE

            if trimmed.startswith(dialect.error_prefix):
                captured.append(line)
                break

            if state is ExtractState.SEEKING:
                if any(phrase in lower for phrase in dialect.plan_start_phrases):
                    state = ExtractState.CAPTURING
                    captured.append(line)
                continue

            if state is ExtractState.CAPTURING:
                captured.append(line)
                if trimmed.startswith(dialect.summary_prefix):
                    state = ExtractState.DONE
                continue

            if state is ExtractState.DONE:
                if trimmed.startswith(dialect.outputs_marker):
                    state = ExtractState.IN_OUTPUTS_SECTION
                    captured.append("")
                    captured.append(line)
                continue

            captured.append(line)
            if any(phrase in lower for phrase in dialect.completion_phrases):
                break

        if not captured:
            logger.debug("No plan markers found; falling back to the last %s lines", self.tail_lines)
            tail = _trim_trailing_blank("\n".join(lines[-self.tail_lines:]))
            if raw and not tail.strip():
                return NO_PRINTABLE_OUTPUT_MESSAGE
            return tail

        return _trim_trailing_blank("\n".join(captured))


def _trim_trailing_blank(text: str) -> str:
    return text.rstrip() or text


def extract_plan_output(raw: str, dialect: Dialect | None = None) -> str:
    return PlanOutputExtractor(dialect).extract(raw)
