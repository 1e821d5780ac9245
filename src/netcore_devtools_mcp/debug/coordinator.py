"""Build-before-run coordination and restart detection for debug sessions.

State machine per session:
REGISTERED → RUNNING → TERMINATED → CLOSED
                ↑          │
                │          ↓ (start within grace window)
                └── RESTARTING_BUILD

A debugger "restart" shows up as a terminate followed quickly by a start
of the same session name. The coordinator stops that start, rebuilds the
project and relaunches it with the saved configuration, so the restarted
session never runs stale code. Terminations reported while the coordinator
is stopping and relaunching a session itself leave no restart check behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..build.host import execute_and_wait
from ..build.tasks import BuildTaskRegistry
from ..config import DEFAULT_BUILD_TIMEOUT_SECONDS, DEFAULT_RESTART_GRACE_SECONDS
from ..host import DebugHost, LoggingNotifier, Notifier, TaskHost
from ..timers import AsyncioScheduler, Scheduler
from .state import DebugSessionRecord, SessionPhase, TerminationMarker

logger = logging.getLogger(__name__)

PhaseListener = Callable[[str, SessionPhase], None]


class DebugSessionCoordinator:
    """Tracks launched sessions and rebuilds them on restart."""

    def __init__(
        self,
        task_registry: BuildTaskRegistry,
        task_host: TaskHost,
        debug_host: DebugHost,
        notifier: Notifier | None = None,
        scheduler: Scheduler | None = None,
        restart_grace_seconds: float = DEFAULT_RESTART_GRACE_SECONDS,
        build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS,
    ):
        """Initialize coordinator.

        Args:
            task_registry: Registry the build tasks are resolved from
            task_host: Executes build tasks
            debug_host: Starts and stops debug sessions
            notifier: User-facing messages (logging-only if not provided)
            scheduler: Timer source (asyncio loop if not provided)
            restart_grace_seconds: Window in which a start after a
                termination is treated as a restart
            build_timeout_seconds: How long to wait for a build to finish
        """
        self._registry = task_registry
        self._task_host = task_host
        self._debug_host = debug_host
        self._notifier = notifier or LoggingNotifier()
        self._scheduler = scheduler or AsyncioScheduler()
        self._grace = restart_grace_seconds
        self._build_timeout = build_timeout_seconds

        self._sessions: dict[str, DebugSessionRecord] = {}
        self._phases: dict[str, SessionPhase] = {}
        self._markers: dict[str, TerminationMarker] = {}
        self._building: set[str] = set()
        self._manually_restarting: set[str] = set()
        self._phase_listeners: list[PhaseListener] = []

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def get_session(self, name: str) -> DebugSessionRecord | None:
        return self._sessions.get(name)

    def phase(self, name: str) -> SessionPhase:
        """Current phase; sessions without metadata are CLOSED."""
        return self._phases.get(name, SessionPhase.CLOSED)

    def has_marker(self, name: str) -> bool:
        return name in self._markers

    def is_building(self, name: str) -> bool:
        return name in self._building

    def active_sessions(self) -> list[DebugSessionRecord]:
        return list(self._sessions.values())

    def on_phase_change(self, listener: PhaseListener) -> None:
        """Register a phase change listener."""
        self._phase_listeners.append(listener)

    def _set_phase(self, name: str, phase: SessionPhase) -> None:
        old = self._phases.get(name, SessionPhase.CLOSED)
        if phase == SessionPhase.CLOSED:
            self._phases.pop(name, None)
        else:
            self._phases[name] = phase
        if old == phase:
            return
        logger.info(f"Session {name}: {old.value} -> {phase.value}")
        for listener in self._phase_listeners:
            try:
                listener(name, phase)
            except Exception:
                logger.exception("Phase listener error")

    def register_session(self, name: str, record: DebugSessionRecord) -> None:
        """Record metadata for a session about to be launched. Overwrites.

        A pending restart check or an unfinished relaunch of the same name
        is abandoned.
        """
        self._drop_marker(name)
        self._manually_restarting.discard(name)
        self._sessions[name] = record
        self._set_phase(name, SessionPhase.REGISTERED)

    async def on_session_start(self, name: str) -> None:
        """Handle a host "session started" event."""
        record = self._sessions.get(name)
        if record is None:
            self._manually_restarting.discard(name)
            logger.debug(f"Ignoring start of unknown session '{name}'")
            return

        if name in self._manually_restarting:
            # Second half of our own relaunch
            self._manually_restarting.discard(name)
            self._drop_marker(name)
            self._set_phase(name, SessionPhase.RUNNING)
            return

        if self.phase(name) == SessionPhase.RESTARTING_BUILD:
            logger.debug(f"Ignoring start of '{name}' while its restart build is running")
            return

        marker = self._markers.pop(name, None)
        if marker is None:
            # Fresh start: the launch path built right before starting
            record.last_build_time = self._scheduler.now()
            self._set_phase(name, SessionPhase.RUNNING)
            return

        if marker.timer is not None:
            marker.timer.cancel()
        self._set_phase(name, SessionPhase.RESTARTING_BUILD)
        await self._debug_host.stop_debugging(name)
        self._notifier.info(f"Restart detected for {name}, rebuilding before relaunch")

        if not await self.build_before_relaunch(record):
            self._notifier.error(f"Build failed for {name}, restart aborted")
            self._set_phase(name, SessionPhase.REGISTERED)
            return

        record.last_build_time = self._scheduler.now()
        configuration = marker.configuration or record.configuration
        if configuration is None:
            self._notifier.warning(f"No saved launch configuration for {name}, not relaunching")
            self._set_phase(name, SessionPhase.REGISTERED)
            return

        self._manually_restarting.add(name)
        started = await self._debug_host.start_debugging(configuration)
        if not started:
            self._manually_restarting.discard(name)
            self._set_phase(name, SessionPhase.REGISTERED)
            self._notifier.warning(f"Relaunch of {name} was not started")

    def on_session_terminate(self, name: str, configuration: dict[str, Any] | None = None) -> None:
        """Handle a host "session terminated" event.

        Starts the restart grace window; if it elapses without a start the
        session's metadata is dropped.
        """
        record = self._sessions.get(name)
        if record is None:
            logger.debug(f"Ignoring termination of unknown session '{name}'")
            return

        if name in self._manually_restarting or self.phase(name) == SessionPhase.RESTARTING_BUILD:
            # The stop issued for our own rebuild, not a user action
            logger.debug(f"Ignoring termination of '{name}' during its restart")
            return

        self._drop_marker(name)

        marker = TerminationMarker(
            session_name=name,
            configuration=configuration or record.configuration,
            deadline=self._scheduler.now() + self._grace,
        )

        def expire() -> None:
            if self._markers.get(name) is not marker:
                return
            del self._markers[name]
            self._sessions.pop(name, None)
            self._set_phase(name, SessionPhase.CLOSED)

        marker.timer = self._scheduler.call_later(self._grace, expire)
        self._markers[name] = marker
        self._set_phase(name, SessionPhase.TERMINATED)

    def _drop_marker(self, name: str) -> None:
        marker = self._markers.pop(name, None)
        if marker is not None and marker.timer is not None:
            marker.timer.cancel()

    async def build_before_relaunch(self, record: DebugSessionRecord) -> bool:
        """Build the session's project, waiting for completion or timeout.

        Concurrent calls for the same session collapse into the running
        build; the extra callers get True immediately.

        Returns:
            True on exit code 0 (or build already in progress)
        """
        name = record.session_name
        if name in self._building:
            logger.debug(f"Build for {name} already in progress")
            return True

        self._building.add(name)
        try:
            task = self._registry.resolve(record.build_task_name) or self._registry.register_or_get(
                record.project_path, record.project_dir, record.project_name
            )
            outcome = await execute_and_wait(
                self._task_host, task, self._scheduler, self._build_timeout
            )
        finally:
            self._building.discard(name)

        if outcome.success:
            self._notifier.info(outcome.to_summary())
            return True
        self._notifier.error(outcome.to_summary())
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sessions": [
                {**record.to_dict(), "phase": self.phase(name).value}
                for name, record in self._sessions.items()
            ],
            "pendingRestartChecks": sorted(self._markers),
            "building": sorted(self._building),
        }
