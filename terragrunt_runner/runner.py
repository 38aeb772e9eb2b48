from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .github import GitHubApiError
from .outputs import write_action_outputs
from .service_container import Services
from .types import ExecutionResult, RunTotals

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunReport:
    results: list[ExecutionResult]
    totals: RunTotals
    comments_posted: int
    comments_failed: int
    warnings: list[str]

    @property
    def success(self) -> bool:
        return self.totals.success


class RunOrchestrator:
    """Execute every unit, then publish: comments are only posted after all runs finish."""

    def __init__(self, services: Services, echo: Callable[[str], None] = print):
        self.services = services
        self.echo = echo

    def _delete_old_comments(self) -> None:
        if not self.services.settings.delete_old_comments:
            return
        try:
            self.services.comments.delete_old_comments()
        except GitHubApiError as exc:
            logger.warning("Failed to delete old comments: %s", exc)

    def _post(self, bodies: list[str]) -> tuple[int, int]:
        posted = failed = 0
        for body in bodies:
            try:
                self.services.comments.create_comment(body)
                posted += 1
            except GitHubApiError as exc:
                failed += 1
                logger.warning("Failed to post comment (%s chars): %s", len(body), exc)
        return posted, failed

    def run(self) -> RunReport:
        self._delete_old_comments()

        results = self.services.engine.execute()
        assembler = self.services.assembler

        bodies = assembler.build_comments(results)
        bodies.append(assembler.format_summary(results))
        posted, failed = self._post(bodies)

        totals = assembler.compute_totals(results)
        warnings = write_action_outputs(self.services.settings.github_output_path, totals)
        for warning in warnings:
            self.echo(f"::warning::{warning}")

        for result in results:
            if result.success:
                continue
            self.echo(f"Terragrunt execution failed for folder: {result.folder}")
            if result.error:
                self.echo(f"Error: {result.error.splitlines()[0]}")

        logger.info(
            "Run finished success=%s units=%s comments_posted=%s comments_failed=%s",
            totals.success,
            len(results),
            posted,
            failed,
        )
        return RunReport(
            results=results,
            totals=totals,
            comments_posted=posted,
            comments_failed=failed,
            warnings=warnings,
        )
