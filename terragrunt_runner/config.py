from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "plan"
DEFAULT_RUN_ALL_ROOT = "live"
DEFAULT_EXTRA_ARGS = "--non-interactive"
DEFAULT_FILE_PATTERNS = ("*.hcl", "*.json", "*.yaml", "*.yml")
DEFAULT_GITHUB_API_URL = "https://api.github.com"
PULL_REF_RE = re.compile(r"refs/pull/(\d+)/")
ENV_PREFIX = "TG_RUNNER_"


@dataclass(frozen=True)
class Settings:
    github_token: str | None = None
    repository: str = ""
    owner: str | None = None
    pull_request: int = 0
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_timeout_seconds: int = 30
    folders: str = ""
    command: str = DEFAULT_COMMAND
    run_all_root: str = DEFAULT_RUN_ALL_ROOT
    extra_args: str = DEFAULT_EXTRA_ARGS
    parallel: bool = True
    max_parallel: int = 5
    delete_old_comments: bool = True
    auto_detect: bool = False
    file_patterns: tuple[str, ...] = DEFAULT_FILE_PATTERNS
    terragrunt_file: str = "terragrunt.hcl"
    changed_files: tuple[str, ...] = field(default_factory=tuple)
    max_walk_up: int = 3
    max_runs: int = 20
    tool_binary: str = "terragrunt"
    dialect: str = ""
    workspace_prefix: str = "/workspace"
    github_output_path: str | None = None
    dry_run: bool = False
    log_level: str = "INFO"


def _env(name: str, default: str = "") -> str:
    """Read an action input (`INPUT_FOO_BAR`), then `TG_RUNNER_FOO_BAR`."""
    key = name.upper().replace("-", "_")
    for candidate in (f"INPUT_{key}", f"{ENV_PREFIX}{key}"):
        value = os.getenv(candidate)
        if value is not None and value.strip():
            return value.strip()
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name, "")
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = _env(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer value for %s: %r", name, raw)
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env(name, "")
    if not raw:
        return default
    return tuple(part.strip() for part in re.split(r"[,\n]+", raw) if part.strip())


def discover_pull_request_number() -> int:
    raw = os.getenv("GITHUB_PR_NUMBER", "").strip()
    if raw.isdigit():
        return int(raw)

    match = PULL_REF_RE.search(os.getenv("GITHUB_REF", ""))
    if match:
        return int(match.group(1))

    event_path = os.getenv("GITHUB_EVENT_PATH", "").strip()
    if event_path:
        try:
            payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Could not read GitHub event payload from %s", event_path)
            return 0
        number = payload.get("number") if isinstance(payload, dict) else None
        if number is None and isinstance(payload, dict):
            number = (payload.get("pull_request") or {}).get("number")
        try:
            return int(number or 0)
        except (TypeError, ValueError):
            return 0
    return 0


def load_settings() -> Settings:
    log_level = _env("log-level", "INFO").upper()
    if os.getenv("DEBUG", "").strip().lower() == "true":
        log_level = "DEBUG"
    return Settings(
        github_token=_env("github-token") or os.getenv("GITHUB_TOKEN", "").strip() or None,
        repository=_env("repository") or os.getenv("GITHUB_REPOSITORY", "").strip(),
        owner=os.getenv("GITHUB_REPOSITORY_OWNER", "").strip() or None,
        pull_request=_env_int("pull-request", 0) or discover_pull_request_number(),
        github_api_url=os.getenv("GITHUB_API_URL", DEFAULT_GITHUB_API_URL).strip() or DEFAULT_GITHUB_API_URL,
        github_timeout_seconds=_env_int("github-timeout-seconds", 30),
        folders=_env("folders"),
        command=_env("command", DEFAULT_COMMAND) or DEFAULT_COMMAND,
        run_all_root=_env("root-dir", DEFAULT_RUN_ALL_ROOT),
        extra_args=_env("args", DEFAULT_EXTRA_ARGS),
        parallel=_env_bool("parallel", True),
        max_parallel=_env_int("max-parallel", 5),
        delete_old_comments=_env_bool("delete-old-comments", True),
        auto_detect=_env_bool("auto-detect", False),
        file_patterns=_env_list("file-patterns", DEFAULT_FILE_PATTERNS),
        terragrunt_file=_env("terragrunt-file", "terragrunt.hcl"),
        changed_files=_env_list("changed-files", ()),
        max_walk_up=_env_int("max-walk-up", 3),
        max_runs=_env_int("max-runs", 20),
        tool_binary=_env("terragrunt-bin", "terragrunt") or "terragrunt",
        dialect=_env("dialect").lower(),
        github_output_path=os.getenv("GITHUB_OUTPUT", "").strip() or None,
        dry_run=_env_bool("dry-run", False),
        log_level=log_level,
    )
