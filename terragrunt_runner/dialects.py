"""Phrase and pattern tables for the planner dialects terragrunt can wrap.

Terraform and OpenTofu word their transcripts slightly differently. Every
phrase the extractor and the change parser look for lives here, keyed by
tool, so that supporting a new wording is a table edit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

TABLE_VERSION = 1

# Plan: [N to import, ]N to add, N to change, N to destroy[, N to replace]
PLAN_SUMMARY_RE = re.compile(
    r"Plan:\s+(?:(?P<import>\d+)\s+to\s+import,?\s+)?"
    r"(?P<add>\d+)\s+to\s+add,?\s+"
    r"(?P<change>\d+)\s+to\s+change,?\s+"
    r"(?P<destroy>\d+)\s+to\s+destroy"
    r"(?:,?\s+(?P<replace>\d+)\s+to\s+replace)?"
)


@dataclass(frozen=True)
class Dialect:
    name: str
    plan_start_phrases: tuple[str, ...]
    no_op_phrases: tuple[str, ...]
    summary_prefix: str = "Plan:"
    outputs_marker: str = "Changes to Outputs:"
    completion_phrases: tuple[str, ...] = (
        "releasing state lock",
        "apply complete!",
        "destroy complete!",
    )
    error_prefix: str = "Error:"
    create_phrases: tuple[str, ...] = ("will be created", "will be added")
    update_phrases: tuple[str, ...] = ("will be updated", "will be changed", "will be modified")
    destroy_phrases: tuple[str, ...] = ("will be destroyed", "will be deleted")
    replace_phrases: tuple[str, ...] = ("must be replaced", "will be replaced")
    import_phrases: tuple[str, ...] = ("will be imported",)
    move_phrases: tuple[str, ...] = ("has moved to",)
    pending_phrases: tuple[str, ...] = ("will be", "must be")


_SHARED_START = (
    "will perform the following actions",
    "used the selected providers to generate the following execution plan",
)

TERRAFORM = Dialect(
    name="terraform",
    plan_start_phrases=_SHARED_START,
    no_op_phrases=("no changes",),
)

OPENTOFU = Dialect(
    name="opentofu",
    plan_start_phrases=_SHARED_START,
    no_op_phrases=("no changes",),
)

DIALECTS: dict[str, Dialect] = {
    TERRAFORM.name: TERRAFORM,
    OPENTOFU.name: OPENTOFU,
    "tofu": OPENTOFU,
}

DEFAULT_DIALECT = TERRAFORM


def get_dialect(name: str | None) -> Dialect:
    if not name:
        return DEFAULT_DIALECT
    return DIALECTS.get(name.strip().lower(), DEFAULT_DIALECT)


def detect_dialect(output: str) -> Dialect:
    if "OpenTofu" in output:
        return OPENTOFU
    return TERRAFORM
