from __future__ import annotations

FORBIDDEN_PATTERNS = (";", "&&", "||", "|", ">", "<", "`", "$(", "${")


class ForbiddenArgumentError(ValueError):
    def __init__(self, token: str, pattern: str):
        super().__init__(f"forbidden pattern in arg: {token}")
        self.token = token
        self.pattern = pattern


def sanitize_args(args: str | None) -> list[str]:
    """Split extra arguments on whitespace and reject any shell metacharacter.

    Tokens are never quoted, escaped or rewritten: the whole string is either
    accepted as-is or rejected with the first offending token.
    """
    tokens = (args or "").split()
    for token in tokens:
        for pattern in FORBIDDEN_PATTERNS:
            if pattern in token:
                raise ForbiddenArgumentError(token, pattern)
    return tokens
