"""Workspace - wires the solution model, build tasks and debug coordination."""

from __future__ import annotations

import logging
import os
from typing import Any

from .build import BuildTaskRegistry, ProcessTaskHost
from .config import DevToolsConfig, load_config
from .debug import ClientDebugHost, DebugSessionCoordinator, ProjectLauncher
from .errors import ManifestParseError
from .host import LoggingNotifier
from .solution import SolutionModel, TreeNode
from .timers import AsyncioScheduler, Scheduler
from .utils.project import find_solution_files

logger = logging.getLogger(__name__)


class Workspace:
    """Everything one client session works with."""

    def __init__(
        self,
        root: str | None = None,
        config: DevToolsConfig | None = None,
        scheduler: Scheduler | None = None,
    ):
        self._root = os.path.abspath(root) if root else None
        self.config = config or load_config()
        self.notifier = LoggingNotifier()
        self.model = SolutionModel()
        self.registry = BuildTaskRegistry(self.config.dotnet_path, self.config.configuration)
        self.task_host = ProcessTaskHost()
        self.debug_host = ClientDebugHost()
        self.coordinator = DebugSessionCoordinator(
            self.registry,
            self.task_host,
            self.debug_host,
            notifier=self.notifier,
            scheduler=scheduler or AsyncioScheduler(),
            restart_grace_seconds=self.config.restart_grace_seconds,
            build_timeout_seconds=self.config.build_timeout_seconds,
        )
        self.launcher = ProjectLauncher(
            self.registry,
            self.task_host,
            self.debug_host,
            self.coordinator,
            config=self.config,
            notifier=self.notifier,
        )

    @property
    def root(self) -> str | None:
        return self._root

    def set_root(self, root: str) -> None:
        self._root = os.path.abspath(root)

    def resolve_path(self, path: str) -> str:
        """Absolute path; relative paths are taken from the workspace root."""
        if os.path.isabs(path) or self._root is None:
            return os.path.abspath(path)
        return os.path.abspath(os.path.join(self._root, path))

    def open_solution(self, path: str | None = None) -> TreeNode:
        """Load a solution, or the only .sln found under the workspace root.

        Raises:
            ManifestParseError: If no solution can be found or read
        """
        if path is None:
            if self._root is None:
                raise ManifestParseError("No workspace root to search for a solution")
            candidates = find_solution_files(self._root)
            if not candidates:
                raise ManifestParseError(f"No .sln file found under {self._root}")
            if len(candidates) > 1:
                names = ", ".join(os.path.relpath(c, self._root) for c in candidates)
                raise ManifestParseError(f"Multiple solutions found, pick one: {names}")
            path = candidates[0]

        node = self.model.load(self.resolve_path(path))
        self.notifier.info(f"Opened solution {node.label} ({len(self.model.projects())} projects)")
        return node

    def auto_open(self) -> TreeNode | None:
        """Open the solution at startup when exactly one exists under the root."""
        if self._root is None:
            return None
        candidates = find_solution_files(self._root)
        if len(candidates) != 1:
            logger.info(f"Found {len(candidates)} solution(s) under {self._root}, not auto-opening")
            return None
        try:
            return self.open_solution(candidates[0])
        except ManifestParseError as e:
            logger.warning(f"Error auto-opening solution: {e}")
            return None

    def close_solution(self) -> None:
        self.model.close()
        self.notifier.info("Solution closed")

    async def shutdown(self) -> None:
        await self.task_host.terminate_all()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "root": self._root,
            "solution": self.model.solution_path,
            "configuration": self.config.configuration,
            "tasks": [t.name for t in self.registry.provide_tasks()],
        }
