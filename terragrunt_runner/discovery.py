from __future__ import annotations

import fnmatch
import logging
import posixpath
from pathlib import Path

from .utils import unique_strings

logger = logging.getLogger(__name__)


def matches_patterns(file_path: str, patterns: tuple[str, ...] | list[str]) -> bool:
    name = posixpath.basename(file_path)
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def find_marker_directory(file_path: str, *, repo_root: Path, marker_file: str, max_walk_up: int) -> str | None:
    directory = posixpath.dirname(file_path) or "."
    for _ in range(max_walk_up):
        if (repo_root / directory / marker_file).is_file():
            return directory
        parent = posixpath.dirname(directory) if directory != "." else "."
        if parent == directory or not parent:
            break
        directory = parent
    return None


def detect_terragrunt_folders(
    changed_files: list[str],
    *,
    repo_root: Path,
    patterns: tuple[str, ...] | list[str],
    marker_file: str = "terragrunt.hcl",
    max_walk_up: int = 3,
) -> list[str]:
    found: list[str] = []
    for file_path in unique_strings(changed_files):
        if not matches_patterns(file_path, patterns):
            continue
        directory = find_marker_directory(
            file_path,
            repo_root=repo_root,
            marker_file=marker_file,
            max_walk_up=max_walk_up,
        )
        if directory:
            found.append(directory)
        else:
            logger.debug("No %s within %s level(s) of %s", marker_file, max_walk_up, file_path)
    return unique_strings(found)
