from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path

FOLDER_SPLIT_RE = re.compile(r"[,\s]+")


def parse_folders(value: str | None) -> list[str]:
    """Split a folder list given as comma, space or newline separated text."""
    if not value:
        return []
    return [part for part in FOLDER_SPLIT_RE.split(value) if part]


def clean_folder(folder: str) -> str:
    stripped = folder.strip()
    if not stripped:
        return ""
    return posixpath.normpath(stripped)


def unique_folders(folders: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for folder in folders:
        cleaned = clean_folder(folder)
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        result.append(cleaned)
    return result


def unique_strings(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def resolve_folder(repo_root: Path, folder: str) -> Path:
    """Absolute path of a folder, relative folders are anchored at the repo root."""
    raw = Path(folder)
    if raw.is_absolute():
        return Path(os.path.normpath(raw))
    return Path(os.path.normpath(repo_root / raw))


def relative_to_run_root(folder: str, *, repo_root: Path, run_root: str) -> str:
    """Translate a repo-relative folder into a path relative to the run --all directory.

    `--queue-include-dir` is resolved by terragrunt against its own working
    directory, so `live/accounts/a` with run root `live/accounts` must become `a`.
    """
    abs_run_dir = Path(os.path.normpath(repo_root / run_root))
    abs_folder = resolve_folder(repo_root, folder)
    try:
        rel = os.path.relpath(abs_folder, abs_run_dir)
    except ValueError:
        rel = folder
        for prefix in (run_root.rstrip("/") + "/", run_root):
            if prefix and rel.startswith(prefix):
                rel = rel[len(prefix):]
                break
        rel = rel.lstrip("/")
    return Path(rel).as_posix()
