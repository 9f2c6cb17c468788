from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

OK = "ok"
SKIPPED = "skipped"
FAILED = "failed"

_MARKS = {OK: "[✓]", SKIPPED: "[ ]", FAILED: "[X]"}


@dataclass(frozen=True)
class FileResult:
    """Outcome of one per-file task. Picklable, so it can cross the process pool."""

    source: str
    status: str
    output: str | None = None
    message: str = ""
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == OK

    def describe(self) -> str:
        name = Path(self.source).name
        mark = _MARKS.get(self.status, "[?]")
        if self.status == OK and self.output:
            return f"{mark} {name} -> {Path(self.output).name}"
        return f"{mark} {name}: {self.message}" if self.message else f"{mark} {name}"
