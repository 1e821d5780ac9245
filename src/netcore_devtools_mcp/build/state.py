"""Task executions and build outcomes.

A TaskExecution is the handle the task host returns when a build starts;
completion is reported separately with the execution and its exit code.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .tasks import BuildTask

_execution_ids = itertools.count(1)


class DiagnosticSeverity(str, Enum):
    """MSBuild diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild diagnostic."""

    severity: DiagnosticSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        return result


# path(line,col): severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?:(?P<file>[^(]+)\((?P<line>\d+),(?P<col>\d+)\):\s*)?"
    r"(?P<severity>error|warning)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[[^\]]+\])?$",
    re.IGNORECASE,
)


def parse_diagnostics(output: str) -> list[BuildDiagnostic]:
    """Extract MSBuild errors and warnings from build output.

    Duplicate lines (MSBuild repeats them in its summary) are reported once.
    """
    diagnostics: list[BuildDiagnostic] = []
    seen: set[str] = set()

    for raw in output.splitlines():
        line = raw.strip()
        if not line or line in seen:
            continue
        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if not match:
            continue
        seen.add(line)
        diagnostics.append(
            BuildDiagnostic(
                severity=DiagnosticSeverity(match.group("severity").lower()),
                code=match.group("code"),
                message=match.group("message"),
                file=match.group("file"),
                line=int(match.group("line")) if match.group("line") else None,
                column=int(match.group("col")) if match.group("col") else None,
            )
        )
    return diagnostics


@dataclass(eq=False)
class TaskExecution:
    """A running instance of a build task. Compared by identity."""

    task: BuildTask
    execution_id: int = field(default_factory=lambda: next(_execution_ids))
    output: str = ""
    """Captured console output, filled in by the host before completion is reported."""

    def to_dict(self) -> dict[str, Any]:
        return {"executionId": self.execution_id, "task": self.task.name}


@dataclass
class BuildOutcome:
    """Result of waiting for one build execution."""

    task_name: str
    exit_code: int | None = None
    timed_out: bool = False
    error: str | None = None
    output: str = ""
    duration_ms: float = 0.0
    diagnostics: list[BuildDiagnostic] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.diagnostics and self.output:
            self.diagnostics = parse_diagnostics(self.output)

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and self.error is None

    @property
    def errors(self) -> list[BuildDiagnostic]:
        return [d for d in self.diagnostics if d.severity == DiagnosticSeverity.ERROR]

    @property
    def warnings(self) -> list[BuildDiagnostic]:
        return [d for d in self.diagnostics if d.severity == DiagnosticSeverity.WARNING]

    def to_summary(self) -> str:
        """One-line human-readable summary."""
        if self.timed_out:
            return f"Build '{self.task_name}' timed out"
        if self.error is not None:
            return f"Build '{self.task_name}' could not run: {self.error}"
        if self.success:
            return f"Build '{self.task_name}' succeeded ({len(self.warnings)} warning(s))"
        return (
            f"Build '{self.task_name}' failed with exit code {self.exit_code} "
            f"({len(self.errors)} error(s))"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "task": self.task_name,
            "success": self.success,
            "exitCode": self.exit_code,
            "timedOut": self.timed_out,
            "durationMs": round(self.duration_ms, 2),
            "errors": [d.to_dict() for d in self.errors],
            "warningCount": len(self.warnings),
        }
        if self.error is not None:
            result["error"] = self.error
        return result
