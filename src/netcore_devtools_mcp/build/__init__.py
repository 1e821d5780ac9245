"""Build tasks for .NET projects.

Provides:
- A registry of named, reusable "build: <Project>" tasks
- A subprocess-backed task host that reports exit codes
- A completion-or-timeout wait used by launch and restart paths
"""

from .host import ProcessTaskHost, execute_and_wait
from .state import BuildDiagnostic, BuildOutcome, TaskExecution, parse_diagnostics
from .tasks import TASK_TYPE, BuildTask, BuildTaskRegistry, task_name_for

__all__ = [
    "TASK_TYPE",
    "BuildDiagnostic",
    "BuildOutcome",
    "BuildTask",
    "BuildTaskRegistry",
    "ProcessTaskHost",
    "TaskExecution",
    "execute_and_wait",
    "parse_diagnostics",
    "task_name_for",
]
