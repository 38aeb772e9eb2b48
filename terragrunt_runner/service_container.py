from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .config import Settings
from .dialects import get_dialect
from .discovery import detect_terragrunt_folders
from .engine import FolderExecutionEngine
from .github import GitHubCommentClient
from .integrations import changed_files_from_git, get_repo_root
from .report import ReportAssembler
from .runtime_config import ConfigError, ExecutionConfig, split_repository

logger = logging.getLogger(__name__)


class CommentClient(Protocol):
    def create_comment(self, body: str) -> int: ...

    def delete_old_comments(self) -> int: ...


class ConsoleCommentClient:
    """Prints comment bodies instead of posting them (dry runs)."""

    def __init__(self, echo):
        self.echo = echo
        self.bodies: list[str] = []

    def create_comment(self, body: str) -> int:
        self.bodies.append(body)
        self.echo(body)
        self.echo("")
        return len(self.bodies)

    def delete_old_comments(self) -> int:
        return 0


@dataclass
class Services:
    settings: Settings
    config: ExecutionConfig
    repo_root: Path
    engine: FolderExecutionEngine
    assembler: ReportAssembler
    comments: CommentClient


def detect_folders(settings: Settings, repo_root: Path) -> list[str]:
    if not settings.auto_detect:
        return []
    changed = list(settings.changed_files) or changed_files_from_git(repo_root)
    detected = detect_terragrunt_folders(
        changed,
        repo_root=repo_root,
        patterns=settings.file_patterns,
        marker_file=settings.terragrunt_file,
        max_walk_up=settings.max_walk_up,
    )
    if detected:
        logger.info("Auto-detected Terragrunt folders: %s", ", ".join(detected))
    return detected


def build_comment_client(settings: Settings) -> GitHubCommentClient:
    missing = [
        name
        for name, present in (
            ("github token", bool(settings.github_token)),
            ("repository", bool(settings.repository)),
            ("pull request number", settings.pull_request > 0),
        )
        if not present
    ]
    if missing:
        raise ConfigError("Missing required config: " + ", ".join(missing))
    owner, repo = split_repository(settings.repository)
    return GitHubCommentClient(
        token=settings.github_token or "",
        owner=settings.owner or owner,
        repo=repo,
        pull_request=settings.pull_request,
        api_url=settings.github_api_url,
        timeout_seconds=settings.github_timeout_seconds,
    )


def build_services(settings: Settings, *, echo=print, repo_root: Path | None = None) -> Services:
    """Validate everything up front; nothing has run when this raises ConfigError."""
    root = repo_root or get_repo_root()
    config = ExecutionConfig.from_settings(settings, detect_folders(settings, root))

    comments: CommentClient
    if settings.dry_run:
        comments = ConsoleCommentClient(echo)
    else:
        comments = build_comment_client(settings)

    return Services(
        settings=settings,
        config=config,
        repo_root=root,
        engine=FolderExecutionEngine(
            config,
            repo_root=root,
            console=echo,
            dialect=get_dialect(settings.dialect) if settings.dialect else None,
        ),
        assembler=ReportAssembler(config),
        comments=comments,
    )
