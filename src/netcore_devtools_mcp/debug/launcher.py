"""Build-then-debug launch path for a single project."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any

from ..build.host import execute_and_wait
from ..build.state import BuildOutcome
from ..build.tasks import BuildTaskRegistry
from ..config import DevToolsConfig
from ..errors import ManifestParseError
from ..host import DebugHost, LoggingNotifier, Notifier, TaskHost
from ..solution.grammar import is_project_manifest, parse_project_manifest
from .coordinator import DebugSessionCoordinator
from .state import DebugSessionRecord

logger = logging.getLogger(__name__)


def output_assembly_path(
    project_dir: str, project_name: str, target_framework: str, configuration: str = "Debug"
) -> str:
    """bin/<configuration>/<tfm>/<name>.dll under the project directory."""
    return os.path.join(project_dir, "bin", configuration, target_framework, f"{project_name}.dll")


def make_debug_config(
    project_name: str,
    program: str,
    project_dir: str,
    debugger_path: str | None = None,
) -> dict[str, Any]:
    """Create a coreclr launch configuration named after the project.

    The session name equals the project name, which is how the
    coordinator recognizes the session when the client reports events.
    """
    config: dict[str, Any] = {
        "type": "coreclr",
        "request": "launch",
        "name": project_name,
        "program": program,
        "args": [],
        "cwd": project_dir,
        "stopAtEntry": False,
        "console": "integratedTerminal",
        "env": {"DOTNET_ENVIRONMENT": "Development"},
    }
    if debugger_path:
        windows = sys.platform == "win32"
        config["pipeTransport"] = {
            "pipeCwd": project_dir,
            "pipeProgram": "powershell" if windows else "bash",
            "pipeArgs": ["-Command"] if windows else ["-c"],
            "debuggerPath": debugger_path,
            "debuggerArgs": ["--interpreter=vscode"],
            "quoteArgs": True,
        }
    return config


@dataclass
class LaunchResult:
    """Outcome of a debug_project request."""

    project_name: str
    started: bool
    message: str
    build: BuildOutcome | None = None
    configuration: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "projectName": self.project_name,
            "started": self.started,
            "message": self.message,
        }
        if self.build is not None:
            result["build"] = self.build.to_dict()
        if self.configuration is not None:
            result["configuration"] = self.configuration
        return result


class ProjectLauncher:
    """Builds a project and asks the debug host to launch it."""

    def __init__(
        self,
        registry: BuildTaskRegistry,
        task_host: TaskHost,
        debug_host: DebugHost,
        coordinator: DebugSessionCoordinator,
        config: DevToolsConfig | None = None,
        notifier: Notifier | None = None,
    ):
        self._registry = registry
        self._task_host = task_host
        self._debug_host = debug_host
        self._coordinator = coordinator
        self._config = config or DevToolsConfig()
        self._notifier = notifier or LoggingNotifier()

    @staticmethod
    def _describe(project_path: str) -> tuple[str, str, str]:
        project_path = os.path.abspath(project_path)
        if not is_project_manifest(project_path) or not os.path.isfile(project_path):
            raise ManifestParseError(f"Not a project file: {project_path}", path=project_path)
        project_dir = os.path.dirname(project_path)
        project_name = os.path.splitext(os.path.basename(project_path))[0]
        return project_path, project_dir, project_name

    async def build_project(self, project_path: str) -> BuildOutcome:
        """Build a project through its registered task and wait for the result."""
        project_path, project_dir, project_name = self._describe(project_path)
        task = self._registry.register_or_get(project_path, project_dir, project_name)
        self._notifier.info(f"Building {project_name}...")
        outcome = await execute_and_wait(
            self._task_host,
            task,
            self._coordinator.scheduler,
            self._config.build_timeout_seconds,
        )
        if outcome.success:
            self._notifier.info(outcome.to_summary())
        else:
            self._notifier.error(outcome.to_summary())
        return outcome

    async def debug_project(self, project_path: str) -> LaunchResult:
        """Build a project, then request a debug launch of its output assembly.

        The session is registered with the coordinator before the build so
        later restarts of it are detected.

        Raises:
            ManifestParseError: If the project file cannot be read
        """
        project_path, project_dir, project_name = self._describe(project_path)
        try:
            with open(project_path, encoding="utf-8-sig") as f:
                manifest = parse_project_manifest(f.read())
        except OSError as e:
            raise ManifestParseError(f"Cannot read {project_path}: {e}", path=project_path) from e

        program = output_assembly_path(
            project_dir, project_name, manifest.target_framework, self._registry.configuration
        )
        task = self._registry.register_or_get(project_path, project_dir, project_name)
        record = DebugSessionRecord(
            session_name=project_name,
            build_task_name=task.name,
            project_path=project_path,
            project_dir=project_dir,
            project_name=project_name,
        )
        self._coordinator.register_session(project_name, record)

        outcome = await self.build_project(project_path)
        if not outcome.success:
            return LaunchResult(project_name, False, f"Build failed for {project_name}", build=outcome)

        if not os.path.isfile(program):
            message = f"Build succeeded but assembly not found: {program}"
            self._notifier.error(message)
            return LaunchResult(project_name, False, message, build=outcome)

        config = make_debug_config(project_name, program, project_dir, self._config.debugger_path)
        record.configuration = config
        started = await self._debug_host.start_debugging(config)
        if not started:
            message = f"Could not start debugger for {project_name}"
            self._notifier.warning(message)
            return LaunchResult(project_name, False, message, build=outcome, configuration=config)

        logger.info(f"Debug launch requested for {project_name}: {program}")
        return LaunchResult(
            project_name, True, f"Launching {project_name}", build=outcome, configuration=config
        )
