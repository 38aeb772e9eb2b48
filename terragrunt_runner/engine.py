from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import subprocess
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import click

from .changes import parse_resource_changes
from .demux import SUMMARY_KEY, reconcile_folder, split_output_by_module
from .dialects import Dialect
from .extractor import PlanOutputExtractor
from .integrations import get_repo_root, resolve_binary
from .normalizer import normalize_output
from .runtime_config import ExecutionConfig
from .sanitizer import ForbiddenArgumentError, sanitize_args
from .types import ExecutionResult, ProcessOutput, ResourceChanges
from .utils import relative_to_run_root, resolve_folder

logger = logging.getLogger(__name__)

AUTOMATION_ENV = {
    "TF_IN_AUTOMATION": "true",
    "TG_NON_INTERACTIVE": "true",
}
SEPARATOR = "#" * 57

CommandRunner = Callable[[list[str], Path, dict[str, str]], ProcessOutput]
Console = Callable[[str], None]


def run_process(argv: list[str], cwd: Path, env: dict[str, str]) -> ProcessOutput:
    # PATH first, then the fallback bin dirs.
    binary = resolve_binary(argv[0]) or argv[0]
    proc = subprocess.run(
        [binary, *argv[1:]],
        cwd=str(cwd),
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    return ProcessOutput(exit_code=int(proc.returncode), stdout=proc.stdout or "", stderr=proc.stderr or "")


def _echo(text: str) -> None:
    click.echo(text)


def build_environment(base: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.update(AUTOMATION_ENV)
    return env


def build_run_all_args(config: ExecutionConfig, *, repo_root: Path, extra_args: list[str]) -> list[str]:
    """Argument vector (without the binary) for a single `run --all` invocation.

    Layout: run --all [terragrunt flags] [planner subcommand] [-- planner args]
    """
    parts = config.command.split()
    if parts and parts[0] == "run-all":
        parts = ["run", "--all", *parts[1:]]

    base: list[str] = []
    planner_args: list[str] = []
    found_separator = False
    for part in parts:
        if part == "--" and not found_separator:
            found_separator = True
            continue
        if found_separator:
            planner_args.append(part)
        else:
            base.append(part)

    subcommand: list[str] = []
    if not found_separator and len(base) > 2 and base[0] == "run" and base[1] == "--all":
        subcommand = base[2:]
        base = base[:2]

    flags: list[str] = []
    if config.max_parallel > 0:
        flags.extend(["--parallelism", str(config.max_parallel)])
    for folder in config.folders:
        rel = relative_to_run_root(folder, repo_root=repo_root, run_root=config.run_all_root)
        logger.debug("Queue include dir original=%s relative=%s run_root=%s", folder, rel, config.run_all_root)
        flags.extend(["--queue-include-dir", rel])
    flags.append("--queue-include-external")
    flags.extend(extra_args)

    argv = [*base, *flags, *subcommand]
    if planner_args:
        argv.append("--")
        argv.extend(planner_args)
    return argv


class FolderExecutionEngine:
    def __init__(
        self,
        config: ExecutionConfig,
        *,
        repo_root: Path | None = None,
        runner: CommandRunner | None = None,
        console: Console | None = None,
        dialect: Dialect | None = None,
        env: dict[str, str] | None = None,
    ):
        self.config = config
        self._repo_root = repo_root
        self.runner = runner or run_process
        self.console = console or _echo
        self.extractor = PlanOutputExtractor(dialect)
        self.dialect = dialect
        self.env = build_environment(env)
        self._console_lock = threading.Lock()

    @property
    def repo_root(self) -> Path:
        if self._repo_root is None:
            self._repo_root = get_repo_root()
        return self._repo_root

    def execute(self) -> list[ExecutionResult]:
        return asyncio.run(self.execute_async())

    async def execute_async(self) -> list[ExecutionResult]:
        repo_root = await asyncio.to_thread(lambda: self.repo_root)
        logger.debug("Resolved repository root %s", repo_root)
        if self.config.is_run_all:
            return await asyncio.to_thread(self.execute_run_all)
        return await self._execute_per_folder()

    async def _execute_per_folder(self) -> list[ExecutionResult]:
        folders = list(self.config.folders)
        if not self.config.parallel:
            results: list[ExecutionResult] = []
            for folder in folders:
                results.append(await asyncio.to_thread(self.execute_in_folder, folder))
            return results

        max_workers = max(1, self.config.parallel_width)
        logger.info("Executing %s folder(s) in parallel max_workers=%s", len(folders), max_workers)
        semaphore = asyncio.Semaphore(max_workers)
        loop = asyncio.get_running_loop()

        # One thread per slot; the loop's default pool is smaller than max_parallel allows.
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="terragrunt") as pool:

            async def run_one(folder: str) -> ExecutionResult:
                async with semaphore:
                    return await loop.run_in_executor(pool, self.execute_in_folder, folder)

            tasks = [asyncio.create_task(run_one(folder)) for folder in folders]
            # Completion order, not input order.
            collected: list[ExecutionResult] = []
            for finished in asyncio.as_completed(tasks):
                collected.append(await finished)
        return collected

    def _run(self, argv: list[str], cwd: Path) -> ProcessOutput:
        logger.info("Executing %s cwd=%s", " ".join(argv)[:500], cwd)
        return self.runner(argv, cwd, self.env)

    def _echo_transcript(self, title: str, output: str) -> None:
        # Raw output keeps its colors for the job log; groups must not interleave.
        with self._console_lock:
            self.console("")
            self.console(click.style(SEPARATOR, fg="red"))
            self.console(f"::group::{title}")
            self.console(output.rstrip("\n"))
            self.console("::endgroup::")
            self.console(click.style(SEPARATOR, fg="red"))

    def execute_in_folder(self, folder: str) -> ExecutionResult:
        abs_folder = resolve_folder(self.repo_root, folder)
        logger.debug("Execute in folder original=%s absolute=%s", folder, abs_folder)

        try:
            extra_args = sanitize_args(self.config.extra_args)
        except ForbiddenArgumentError as exc:
            logger.error("Rejected extra arguments for %s: %s", folder, exc)
            return ExecutionResult(folder=folder, error=str(exc), success=False)

        if not abs_folder.is_dir():
            return ExecutionResult(folder=folder, error=f"Folder does not exist: {abs_folder}", success=False)

        argv = [self.config.tool_binary, *self.config.command.split(), *extra_args]
        try:
            proc = self._run(argv, abs_folder)
        except FileNotFoundError:
            return ExecutionResult(
                folder=folder,
                error=f"Executable not found: {self.config.tool_binary}",
                success=False,
            )
        except OSError as exc:
            return ExecutionResult(folder=folder, error=f"Failed to start {self.config.tool_binary}: {exc}", success=False)

        output = proc.combined
        self._echo_transcript(f"Terragrunt in {folder}", output)

        cleaned = self.extractor.extract(output)
        changes = parse_resource_changes(output, self.dialect)
        success = proc.exit_code == 0
        logger.info("Finished folder=%s exit_code=%s", folder, proc.exit_code)
        return ExecutionResult(
            folder=folder,
            output=cleaned,
            raw_output=output,
            error=None if success else _failure_text(proc.exit_code, cleaned),
            resource_changes=changes,
            success=success,
            exit_code=proc.exit_code,
        )

    def execute_run_all(self) -> list[ExecutionResult]:
        run_root = self.config.run_all_root
        run_dir = resolve_folder(self.repo_root, run_root)

        try:
            extra_args = sanitize_args(self.config.extra_args)
        except ForbiddenArgumentError as exc:
            logger.error("Rejected extra arguments: %s", exc)
            return [ExecutionResult(folder=run_root, error=str(exc), success=False)]

        argv = [self.config.tool_binary, *build_run_all_args(self.config, repo_root=self.repo_root, extra_args=extra_args)]
        try:
            proc = self._run(argv, run_dir)
        except FileNotFoundError:
            return [ExecutionResult(folder=run_root, error=f"Executable not found: {self.config.tool_binary}", success=False)]
        except OSError as exc:
            return [ExecutionResult(folder=run_root, error=f"Failed to run in {run_dir}: {exc}", success=False)]

        output = proc.combined
        self._echo_transcript(f"Terragrunt run --all from {run_dir}", output)

        process_ok = proc.exit_code == 0
        process_error = None if process_ok else f"exit status {proc.exit_code}"
        cleaned_all = normalize_output(output)

        module_outputs = split_output_by_module(cleaned_all)
        summary_output = module_outputs.pop(SUMMARY_KEY, "")

        results: list[ExecutionResult] = []
        totals = ResourceChanges()
        all_no_changes = True
        for tag, module_output in module_outputs.items():
            changes = parse_resource_changes(module_output, self.dialect)
            totals.accumulate(changes)
            success = process_ok and "Error:" not in module_output
            all_no_changes = all_no_changes and success and changes.no_changes
            cleaned = self.extractor.extract(module_output)
            results.append(
                ExecutionResult(
                    folder=reconcile_folder(tag, self.config.folders, run_root),
                    output=cleaned,
                    raw_output=module_output,
                    error=None if success else _failure_text(proc.exit_code, cleaned, process_error),
                    resource_changes=changes,
                    success=success,
                    exit_code=proc.exit_code,
                )
            )

        if results and summary_output:
            results[-1].output = f"{results[-1].output}\n\n{summary_output}"

        if not results:
            logger.warning("Could not split run --all output by module; reporting combined output per folder")
            totals = parse_resource_changes(cleaned_all, self.dialect)
            all_no_changes = process_ok and totals.no_changes
            for folder in self.config.folders:
                results.append(
                    ExecutionResult(
                        folder=folder,
                        output=cleaned_all,
                        raw_output=output,
                        error=process_error,
                        resource_changes=dataclasses.replace(totals),
                        success=process_ok,
                        exit_code=proc.exit_code,
                    )
                )

        totals.no_changes = all_no_changes and totals.total() == 0
        whole_run = ExecutionResult(
            folder=run_root,
            output=cleaned_all.strip(),
            raw_output=output,
            error=None if process_ok else _failure_text(proc.exit_code, self.extractor.extract(output)),
            resource_changes=totals,
            success=process_ok,
            exit_code=proc.exit_code,
        )
        return [whole_run, *results]


def _failure_text(exit_code: int, cleaned: str, prefix: str | None = None) -> str:
    head = prefix or f"exit status {exit_code}"
    if exit_code == 0:
        head = "Error reported in output"
    if cleaned.strip():
        return f"{head}\n\n{cleaned}"
    return head
