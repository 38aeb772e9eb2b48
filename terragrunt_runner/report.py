from __future__ import annotations

import logging

from .runtime_config import ExecutionConfig
from .types import CommentChunk, ExecutionResult, ResourceChanges, RunTotals

logger = logging.getLogger(__name__)

MAX_COMMENT_SIZE = 65536
HEADER_SIZE = 500
CHUNK_MARGIN = 300

BOT_COMMENT_HEADERS = (
    "Terragrunt Execution",
    "Failed Terragrunt",
    "Terragrunt Summary",
    "Success Terragrunt",
)


def byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def format_resource_changes(changes: ResourceChanges) -> str:
    parts: list[str] = []
    if changes.to_add > 0:
        parts.append(f"+{changes.to_add} add")
    if changes.to_change > 0:
        parts.append(f"~{changes.to_change} change")
    if changes.to_destroy > 0:
        parts.append(f"-{changes.to_destroy} destroy")
    if changes.to_replace > 0:
        parts.append(f"/{changes.to_replace} replace")
    if changes.to_import > 0:
        parts.append(f"{changes.to_import} import")
    if changes.to_move > 0:
        parts.append(f"{changes.to_move} move")
    return "**Changes:** " + ", ".join(parts) + "\n"


def _split_long_line(line: str, max_bytes: int) -> list[str]:
    pieces: list[str] = []
    current: list[str] = []
    size = 0
    for char in line:
        width = byte_len(char)
        if size + width > max_bytes and current:
            pieces.append("".join(current))
            current, size = [], 0
        current.append(char)
        size += width
    if current:
        pieces.append("".join(current))
    return pieces


def split_content(content: str, max_bytes: int) -> list[str]:
    """Split at line boundaries into chunks of at most `max_bytes` UTF-8 bytes.

    Joining the chunks gives back `content` exactly. Only a single line that
    is longer than the budget on its own is cut mid-line.
    """
    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    chunks: list[str] = []
    current: list[str] = []
    size = 0
    for line in content.splitlines(keepends=True):
        for piece in _split_long_line(line, max_bytes) if byte_len(line) > max_bytes else [line]:
            width = byte_len(piece)
            if size + width > max_bytes and current:
                chunks.append("".join(current))
                current, size = [], 0
            current.append(piece)
            size += width
    if current:
        chunks.append("".join(current))
    return chunks


def _details(title: str, content: str) -> str:
    body = content[:-1] if content.endswith("\n") else content
    return f"\n\n<details><summary><b>{title}</b></summary>\n\n```hcl\n{body}\n```\n</details>"


class ReportAssembler:
    def __init__(self, config: ExecutionConfig):
        self.config = config

    def _is_whole_run_row(self, result: ExecutionResult) -> bool:
        return self.config.is_run_all and result.folder == self.config.run_all_root

    def whole_run_result(self, results: list[ExecutionResult]) -> ExecutionResult | None:
        if self.config.is_run_all and len(results) > 1 and self._is_whole_run_row(results[0]):
            return results[0]
        return None

    def table_results(self, results: list[ExecutionResult]) -> list[ExecutionResult]:
        if self.whole_run_result(results) is not None:
            return results[1:]
        return list(results)

    def comment_results(self, results: list[ExecutionResult]) -> list[ExecutionResult]:
        # run --all posts one comment for the whole run; modules appear in the summary table.
        if self.whole_run_result(results) is not None:
            return results[:1]
        return list(results)

    def format_header(self, result: ExecutionResult, part: int | None = None, total: int | None = None) -> str:
        status = "✅ Success" if result.success else "❌ Failed"
        label = result.folder
        if part is not None and total is not None:
            label = f"{result.folder} ({part}/{total})"

        if self.config.is_run_all:
            header = f"## {status} Terragrunt: {self.config.command}\n"
            header += f"**Folder:** {label}\n"
        else:
            header = f"## {status} Terragrunt: {label}\n"
        header += f"**Command:** {self.config.command}\n"

        changes = result.resource_changes
        if changes is not None and not changes.no_changes and (changes.total() or changes.to_import or changes.to_move):
            header += format_resource_changes(changes)
        return header

    def build_result_comments(self, result: ExecutionResult) -> list[CommentChunk]:
        header = self.format_header(result)

        if result.success and result.resource_changes is not None and result.resource_changes.no_changes:
            return [CommentChunk(body=header + "\nNo Changes", content="")]

        title = "View Output"
        content = result.output
        if not result.success:
            title = "View Error Details"
            content = result.error or result.output or "Unknown error"

        if byte_len(header) + byte_len(content) <= MAX_COMMENT_SIZE - HEADER_SIZE:
            return [CommentChunk(body=header + _details(title, content), content=content)]

        overhead = byte_len(self.format_header(result, 9999, 9999) + _details(f"{title} (Part 9999/9999)", ""))
        budget = MAX_COMMENT_SIZE - max(overhead, HEADER_SIZE) - CHUNK_MARGIN
        pieces = split_content(content, budget)
        total = len(pieces)
        logger.info("Splitting output for %s into %s comment(s)", result.folder, total)

        chunks: list[CommentChunk] = []
        for index, piece in enumerate(pieces, start=1):
            part_header = self.format_header(result, index, total)
            part_title = f"{title} (Part {index}/{total})"
            chunks.append(CommentChunk(body=part_header + _details(part_title, piece), content=piece, part=index, total=total))
        return chunks

    def build_comments(self, results: list[ExecutionResult]) -> list[str]:
        bodies: list[str] = []
        for result in self.comment_results(results):
            bodies.extend(chunk.body for chunk in self.build_result_comments(result))
        return bodies

    def compute_totals(self, results: list[ExecutionResult]) -> RunTotals:
        totals = RunTotals()
        for result in self.table_results(results):
            if result.success:
                totals.succeeded += 1
            else:
                totals.failed += 1
            changes = result.resource_changes
            if changes is None:
                continue
            if changes.no_changes:
                if result.success:
                    totals.no_changes += 1
            else:
                totals.changes.accumulate(changes)

        # Module rows may share the aggregate counts; the whole-run row holds them once.
        whole_run = self.whole_run_result(results)
        if whole_run is not None and whole_run.resource_changes is not None:
            totals.changes = ResourceChanges()
            totals.changes.accumulate(whole_run.resource_changes)

        # The whole-run row counts too: the run fails if terragrunt itself failed.
        totals.success = all(result.success for result in results)
        return totals

    def format_summary(self, results: list[ExecutionResult]) -> str:
        rows = self.table_results(results)
        totals = self.compute_totals(results)

        lines = [
            "## Terragrunt Summary",
            "",
            f"**Command:** {self.config.command}",
            f"**Folders:** {len(rows)}",
            "",
            "| Folder | Status | Add | Change | Destroy | Replace |",
            "|--------|--------|-----|--------|---------|---------|",
        ]
        row_lines: list[str] = []
        for result in rows:
            status = "✅" if result.success else "❌"
            add = change = destroy = replace = "0"
            changes = result.resource_changes
            if changes is not None and not changes.no_changes:
                if changes.to_add > 0:
                    add = f"+{changes.to_add}"
                if changes.to_change > 0:
                    change = f"~{changes.to_change}"
                if changes.to_destroy > 0:
                    destroy = f"-{changes.to_destroy}"
                if changes.to_replace > 0:
                    replace = f"/{changes.to_replace}"
            row_lines.append(f"| {result.folder} | {status} | {add} | {change} | {destroy} | {replace} |")

        succeeded = sum(1 for result in rows if result.success)
        sums = totals.changes
        total_line = (
            f"| **Total** | {succeeded}/{len(rows)} | +{sums.to_add} | ~{sums.to_change} "
            f"| -{sums.to_destroy} | /{sums.to_replace} |"
        )
        footer = [
            "",
            f"- Success: {succeeded}/{len(rows)}",
            f"- No Changes: {totals.no_changes}",
        ]

        fixed = "\n".join(lines + [total_line] + footer) + "\n"
        budget = MAX_COMMENT_SIZE - byte_len(fixed) - CHUNK_MARGIN
        kept: list[str] = []
        used = 0
        for row in row_lines:
            width = byte_len(row) + 1
            if used + width > budget:
                omitted = len(row_lines) - len(kept)
                logger.warning("Summary table truncated; %s row(s) omitted", omitted)
                kept.append(f"| ... {omitted} more folder(s) omitted | | | | | |")
                break
            kept.append(row)
            used += width
        return "\n".join(lines + kept + [total_line] + footer) + "\n"
