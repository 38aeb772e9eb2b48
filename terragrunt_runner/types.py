from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ResourceChanges:
    to_add: int = 0
    to_change: int = 0
    to_destroy: int = 0
    to_replace: int = 0
    to_import: int = 0
    to_move: int = 0
    no_changes: bool = False

    def total(self) -> int:
        return self.to_add + self.to_change + self.to_destroy + self.to_replace

    def accumulate(self, other: ResourceChanges | None) -> None:
        if other is None:
            return
        self.to_add += other.to_add
        self.to_change += other.to_change
        self.to_destroy += other.to_destroy
        self.to_replace += other.to_replace
        self.to_import += other.to_import
        self.to_move += other.to_move


@dataclass(slots=True)
class ExecutionResult:
    folder: str
    output: str = ""
    raw_output: str = ""
    error: str | None = None
    resource_changes: ResourceChanges | None = None
    success: bool = False
    exit_code: int | None = None


@dataclass(slots=True)
class CommentChunk:
    body: str
    content: str
    part: int = 1
    total: int = 1


@dataclass(slots=True)
class ProcessOutput:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        return self.stdout + self.stderr


@dataclass(slots=True)
class RunTotals:
    changes: ResourceChanges = field(default_factory=ResourceChanges)
    succeeded: int = 0
    failed: int = 0
    no_changes: int = 0
    success: bool = True
