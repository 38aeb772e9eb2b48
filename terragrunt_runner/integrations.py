from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

FALLBACK_BIN_DIRS = (
    "/opt/tools",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "~/.local/bin",
)


def resolve_binary(binary: str) -> str | None:
    candidate = Path(binary).expanduser()
    if "/" in binary or binary.startswith("."):
        if candidate.exists() and os.access(candidate, os.X_OK):
            return str(candidate.resolve())
        return None

    found = shutil.which(binary)
    if found:
        return found

    for raw_dir in FALLBACK_BIN_DIRS:
        path = (Path(raw_dir).expanduser() / binary).expanduser()
        if path.exists() and os.access(path, os.X_OK):
            return str(path.resolve())
    return None


def get_repo_root(cwd: Path | None = None) -> Path:
    """Top of the git checkout, or the current directory when git can't tell."""
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git rev-parse failed: %s", exc)
        proc = None

    if proc is not None and proc.returncode == 0 and proc.stdout.strip():
        return Path(proc.stdout.strip())

    fallback = (cwd or Path.cwd()).resolve()
    logger.warning("Could not determine git repo root, falling back to current dir: %s", fallback)
    return fallback


def changed_files_from_git(repo_root: Path, base: str = "HEAD~1") -> list[str]:
    try:
        proc = subprocess.run(
            ["git", "diff", "--name-only", base],
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            timeout=60,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        logger.warning("Could not list changed files from git")
        return []
    if proc.returncode != 0:
        logger.warning("git diff exited with %s: %s", proc.returncode, (proc.stderr or "").strip()[:300])
        return []
    return [line.strip() for line in proc.stdout.splitlines() if line.strip()]
