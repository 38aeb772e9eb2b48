from __future__ import annotations

import re

# CSI sequences, OSC sequences terminated by BEL, keypad mode switches, and the
# corrupted form where ESC was decoded as U+FFFD.
ANSI_RE = re.compile(
    r"\x1b\[[0-9;?]*[a-zA-Z]"
    r"|\x1b\][^\x07]*\x07"
    r"|\x1b[=>]"
    r"|�\[[0-9;]*[a-zA-Z]"
)


def strip_ansi(text: str) -> str:
    # Removing one sequence can splice a new one together, so strip to a fixed point.
    while True:
        stripped = ANSI_RE.sub("", text)
        if stripped == text:
            return stripped
        text = stripped


def normalize_output(text: str) -> str:
    if not text:
        return ""
    cleaned = strip_ansi(text)
    while "\r\n" in cleaned:
        cleaned = cleaned.replace("\r\n", "\n")
    return cleaned
