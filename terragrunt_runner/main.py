"""terragrunt-runner: run Terragrunt across folders and report back on the pull request.

Every option falls back to the matching action input or environment
variable (see `config.load_settings`).

Usage:
    terragrunt-runner --folders "live/a live/b" --command plan
    terragrunt-runner --command "run --all plan" --root-dir live --dry-run
"""
from __future__ import annotations

import dataclasses
import logging
import sys
from typing import Any

import click

from . import __version__
from .config import Settings, load_settings
from .runner import RunOrchestrator
from .runtime_config import ConfigError
from .service_container import build_services

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _split_csv(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(part.strip() for part in value.replace("\n", ",").split(",") if part.strip())


def apply_overrides(settings: Settings, overrides: dict[str, Any]) -> Settings:
    changes = {key: value for key, value in overrides.items() if value is not None}
    return dataclasses.replace(settings, **changes)


@click.command("terragrunt-runner")
@click.version_option(__version__, prog_name="terragrunt-runner")
@click.option("--folders", default=None, help="Folders to run in (comma, space or newline separated)")
@click.option("--command", "command", default=None, help="Terragrunt command, e.g. 'plan' or 'run --all plan'")
@click.option("--root-dir", "run_all_root", default=None, help="Directory run --all is executed from")
@click.option("--args", "extra_args", default=None, help="Additional Terragrunt arguments")
@click.option("--parallel/--sequential", default=None, help="Run folders in parallel")
@click.option("--max-parallel", type=int, default=None, help="Maximum parallel executions (0 = unlimited)")
@click.option("--delete-old-comments/--keep-old-comments", default=None, help="Delete previous bot comments")
@click.option("--auto-detect/--no-auto-detect", default=None, help="Detect folders from changed files")
@click.option("--changed-files", default=None, help="Changed files for auto-detection (comma separated)")
@click.option("--file-patterns", default=None, help="File patterns tracked by auto-detection (comma separated)")
@click.option("--terragrunt-file", default=None, help="Marker file that identifies a Terragrunt folder")
@click.option("--max-walk-up", type=int, default=None, help="Directory levels to walk up looking for the marker file")
@click.option("--max-runs", type=int, default=None, help="Maximum number of folders (0 = unlimited)")
@click.option("--repository", default=None, help="GitHub repository (owner/repo)")
@click.option("--pull-request", type=int, default=None, help="Pull request number")
@click.option("--github-token", default=None, help="GitHub token for API access")
@click.option("--binary", "tool_binary", default=None, help="Terragrunt executable name or path")
@click.option("--dialect", type=click.Choice(["terraform", "opentofu", "tofu"]), default=None, help="Planner wording to expect (detected from output when unset)")
@click.option("--dry-run/--no-dry-run", default=None, help="Print comments instead of posting them")
def cli(changed_files: str | None, file_patterns: str | None, **options: Any) -> None:
    """Execute Terragrunt commands and post results to a GitHub pull request."""
    settings = apply_overrides(
        load_settings(),
        {
            **options,
            "changed_files": _split_csv(changed_files),
            "file_patterns": _split_csv(file_patterns),
        },
    )
    configure_logging(settings.log_level)
    click.echo(f"Terragrunt Runner Version: {__version__}")

    if settings.github_token:
        click.echo(f"::add-mask::{settings.github_token}")

    try:
        services = build_services(settings, echo=click.echo)
    except ConfigError as exc:
        click.echo(f"::error::{exc}")
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(1)

    report = RunOrchestrator(services, echo=click.echo).run()
    if not report.success:
        logger.error("Some executions failed")
        raise SystemExit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
