from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .config import Settings
from .utils import parse_folders, unique_folders

logger = logging.getLogger(__name__)

REPO_PART_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
MAX_PARALLEL_LIMIT = 50


class ConfigError(ValueError):
    pass


def is_run_all_command(command: str) -> bool:
    return "--all" in command or command.strip().startswith("run-all")


def split_repository(repository: str) -> tuple[str, str]:
    parts = repository.split("/")
    if len(parts) != 2 or not all(REPO_PART_RE.match(part) for part in parts):
        raise ConfigError(f"Invalid repository format: {repository!r} (expected owner/repo)")
    return parts[0], parts[1]


def validate_folder(folder: str, workspace_prefix: str = "/workspace") -> None:
    if ".." in folder.split("/"):
        raise ConfigError(f"Invalid folder: {folder}")
    if folder.startswith("/") and not (folder == workspace_prefix or folder.startswith(workspace_prefix.rstrip("/") + "/")):
        raise ConfigError(f"Invalid folder: {folder}")


@dataclass(frozen=True)
class ExecutionConfig:
    command: str
    folders: tuple[str, ...]
    extra_args: str = ""
    max_parallel: int = 5
    parallel: bool = True
    run_all_root: str = "live"
    tool_binary: str = "terragrunt"

    @property
    def is_run_all(self) -> bool:
        return is_run_all_command(self.command)

    @property
    def parallel_width(self) -> int:
        if self.max_parallel == 0:
            return len(self.folders)
        return self.max_parallel

    @classmethod
    def create(
        cls,
        *,
        command: str,
        folders: list[str] | tuple[str, ...],
        extra_args: str = "",
        max_parallel: int = 5,
        parallel: bool = True,
        run_all_root: str = "live",
        tool_binary: str = "terragrunt",
        max_runs: int = 0,
        workspace_prefix: str = "/workspace",
    ) -> ExecutionConfig:
        # Containment is checked on the raw strings: cleaning would fold "a/../b" into "b".
        for folder in folders:
            validate_folder(folder.strip(), workspace_prefix)
        cleaned = tuple(unique_folders(list(folders)))
        if not cleaned:
            raise ConfigError("At least one folder is required")
        if max_runs > 0 and len(cleaned) > max_runs:
            raise ConfigError(f"Too many Terragrunt folders: {len(cleaned)} > {max_runs}")

        if max_parallel < 0 or max_parallel > MAX_PARALLEL_LIMIT:
            raise ConfigError(f"max_parallel must be between 0 and {MAX_PARALLEL_LIMIT}")

        cleaned_command = " ".join(command.split())
        if not cleaned_command:
            raise ConfigError("Command cannot be empty")

        cleaned_binary = tool_binary.strip()
        if not cleaned_binary:
            raise ConfigError("Tool binary cannot be empty")

        return cls(
            command=cleaned_command,
            folders=cleaned,
            extra_args=extra_args.strip(),
            max_parallel=max_parallel,
            parallel=parallel,
            run_all_root=run_all_root.strip().strip("/") or ".",
            tool_binary=cleaned_binary,
        )

    @classmethod
    def from_settings(cls, settings: Settings, extra_folders: list[str] | None = None) -> ExecutionConfig:
        folders = parse_folders(settings.folders) + list(extra_folders or [])
        return cls.create(
            command=settings.command,
            folders=folders,
            extra_args=settings.extra_args,
            max_parallel=settings.max_parallel,
            parallel=settings.parallel,
            run_all_root=settings.run_all_root,
            tool_binary=settings.tool_binary,
            max_runs=settings.max_runs,
            workspace_prefix=settings.workspace_prefix,
        )
