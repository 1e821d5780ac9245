"""Debug session coordination state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..timers import TimerHandle


class SessionPhase(str, Enum):
    """Lifecycle of one coordinated debug session."""
    REGISTERED = "registered"  # Metadata known, not started yet
    RUNNING = "running"  # Host reported start
    TERMINATED = "terminated"  # Waiting out the restart grace window
    RESTARTING_BUILD = "restartingBuild"  # Rebuilding before relaunch
    CLOSED = "closed"  # Grace window elapsed, metadata dropped


@dataclass
class DebugSessionRecord:
    """What the coordinator knows about one launched project."""
    session_name: str
    build_task_name: str
    project_path: str
    project_dir: str
    project_name: str
    configuration: dict[str, Any] | None = None
    last_build_time: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sessionName": self.session_name,
            "buildTaskName": self.build_task_name,
            "projectPath": self.project_path,
            "projectDir": self.project_dir,
            "projectName": self.project_name,
            "lastBuildTime": self.last_build_time,
        }


@dataclass(eq=False)
class TerminationMarker:
    """Saved launch configuration of a session that just terminated."""
    session_name: str
    configuration: dict[str, Any] | None
    deadline: float
    timer: TimerHandle | None = None
