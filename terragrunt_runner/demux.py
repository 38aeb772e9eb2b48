from __future__ import annotations

import re

SUMMARY_KEY = "_summary"

MODULE_LINE_RE = re.compile(r"^\[(.*?)\] (.*)$")
MODULE_END_MARKERS = (
    "Releasing state lock",
    "❯❯ Run Summary",
    "Run Summary",
)


def split_output_by_module(output: str) -> dict[str, str]:
    """Split a `run --all` transcript into one body per `[module]` tag.

    Lines before the first tag, and everything after an end-of-run banner up
    to the next tag, land in the `_summary` bucket.
    """
    modules: dict[str, list[str]] = {}
    unmatched: list[str] = []
    current: str | None = None

    for line in output.splitlines():
        if any(marker in line for marker in MODULE_END_MARKERS):
            current = None
            unmatched.append(line)
            continue

        match = MODULE_LINE_RE.match(line)
        if match:
            current = match.group(1)
            modules.setdefault(current, []).append(match.group(2))
        elif current is not None:
            modules[current].append(line)
        else:
            unmatched.append(line)

    result = {module: "\n".join(lines).strip() for module, lines in modules.items()}
    summary = "\n".join(unmatched).strip()
    if summary:
        result[SUMMARY_KEY] = summary
    return result


def _path_parts(value: str) -> list[str]:
    return [part for part in value.replace("\\", "/").split("/") if part and part != "."]


def _common_suffix_len(left: list[str], right: list[str]) -> int:
    count = 0
    for a, b in zip(reversed(left), reversed(right)):
        if a != b:
            break
        count += 1
    return count


def reconcile_folder(tag: str, folders: list[str] | tuple[str, ...], run_root: str = "") -> str:
    """Map a module tag back to the caller's folder spelling.

    Tags are relative to the run --all directory, folders to the repository
    root; the folder sharing the longest trailing path with the tag wins.
    """
    tag_parts = _path_parts(tag)
    if not tag_parts:
        return tag
    root_parts = _path_parts(run_root)

    best: str | None = None
    best_score = 0
    for folder in folders:
        folder_parts = _path_parts(folder)
        if root_parts and folder_parts[: len(root_parts)] == root_parts and folder_parts[len(root_parts):] == tag_parts:
            return folder
        score = _common_suffix_len(tag_parts, folder_parts)
        if score > best_score:
            best, best_score = folder, score
    return best if best is not None else tag
