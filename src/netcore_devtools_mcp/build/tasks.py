"""Build task registry.

Tasks are named "build: <ProjectName>" and can be resolved either by that
name or, after the host forgot them, from a task definition carrying the
project path.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

logger = logging.getLogger(__name__)

TASK_TYPE: Final[str] = "netcore-build"
TASK_SOURCE: Final[str] = "dotnet"
PROBLEM_MATCHER: Final[str] = "$msCompile"

ALLOWED_CONFIGURATIONS: Final[frozenset[str]] = frozenset({"Debug", "Release"})


def task_name_for(project_name: str) -> str:
    """Deterministic task name for a project."""
    return f"build: {project_name}"


@dataclass
class BuildTask:
    """A reusable build invocation for one project."""

    name: str
    project_path: str
    program: str
    args: list[str]
    cwd: str
    source: str = TASK_SOURCE
    problem_matcher: str = PROBLEM_MATCHER
    definition: dict[str, Any] = field(default_factory=dict)

    @property
    def command(self) -> list[str]:
        return [self.program, *self.args]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "definition": dict(self.definition),
            "command": self.command,
            "cwd": self.cwd,
            "source": self.source,
            "problemMatcher": self.problem_matcher,
        }


class BuildTaskRegistry:
    """Name -> BuildTask map with idempotent registration."""

    def __init__(self, dotnet_path: str = "dotnet", configuration: str = "Debug"):
        if configuration not in ALLOWED_CONFIGURATIONS:
            raise ValueError(f"Invalid configuration: {configuration}")
        self._dotnet_path = dotnet_path
        self._configuration = configuration
        self._tasks: dict[str, BuildTask] = {}

    @property
    def configuration(self) -> str:
        return self._configuration

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def get(self, name: str) -> BuildTask | None:
        return self._tasks.get(name)

    def register_or_get(self, project_path: str, project_dir: str, project_name: str) -> BuildTask:
        """Return the project's task, creating it on first use."""
        name = task_name_for(project_name)
        existing = self._tasks.get(name)
        if existing is not None:
            return existing

        task = BuildTask(
            name=name,
            project_path=project_path,
            program=self._dotnet_path,
            args=["build", project_path, "--configuration", self._configuration],
            cwd=project_dir,
            definition={"type": TASK_TYPE, "projectPath": project_path},
        )
        self._tasks[name] = task
        logger.debug(f"Registered build task '{name}': {' '.join(task.command)}")
        return task

    def resolve(self, name: str, definition: Mapping[str, Any] | None = None) -> BuildTask | None:
        """Find a task by name, or rebuild it from its definition.

        Args:
            name: Task name
            definition: Task definition; a "netcore-build" definition with
                a projectPath is enough to recreate the task

        Returns:
            The task, or None if it is unknown and cannot be recreated
        """
        task = self._tasks.get(name)
        if task is not None:
            return task

        if definition and definition.get("type") == TASK_TYPE:
            project_path = definition.get("projectPath")
            if project_path:
                logger.info(f"Recreating build task from definition: {project_path}")
                return self.register_or_get(
                    project_path,
                    os.path.dirname(project_path),
                    os.path.splitext(os.path.basename(project_path))[0],
                )
        return None

    def provide_tasks(self) -> list[BuildTask]:
        """All registered tasks."""
        return list(self._tasks.values())
