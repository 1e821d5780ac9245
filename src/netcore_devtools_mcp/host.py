"""Host collaborator contracts.

The solution model and session coordinator never talk to an editor
directly. They go through these narrow surfaces:

- TaskHost: start a build task, report "task finished with exit code N"
- DebugHost: start a debug session from a config, stop a session by name
- Notifier: user-facing information/warning/error messages
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .build.state import TaskExecution
    from .build.tasks import BuildTask

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 200

TaskCompletionListener = Callable[["TaskExecution", int], None]


class TaskHost(Protocol):
    """Executes build tasks and reports their exit codes."""

    async def execute_task(self, task: BuildTask) -> TaskExecution:
        """Start the task; returns once it is running, not when it ends."""
        ...

    def on_task_completed(self, listener: TaskCompletionListener) -> Callable[[], None]:
        """Subscribe to completions. Returns a callable that unsubscribes."""
        ...


class DebugHost(Protocol):
    """Starts and stops debug sessions on behalf of the coordinator."""

    async def start_debugging(self, configuration: dict[str, Any]) -> bool:
        """Request a debug launch. Returns False if the host refused it."""
        ...

    async def stop_debugging(self, session_name: str) -> None:
        """Request that the named session stop."""
        ...


class Notifier(Protocol):
    """User-facing message surface."""

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


@dataclass
class Notification:
    """One message shown to the user."""

    level: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level, "message": self.message}


class LoggingNotifier:
    """Notifier that logs messages and keeps the most recent ones."""

    def __init__(self, max_messages: int = MAX_NOTIFICATIONS):
        self._messages: deque[Notification] = deque(maxlen=max_messages)

    @property
    def messages(self) -> list[Notification]:
        return list(self._messages)

    def _add(self, level: str, message: str) -> None:
        self._messages.append(Notification(level, message))

    def info(self, message: str) -> None:
        logger.info(message)
        self._add("info", message)

    def warning(self, message: str) -> None:
        logger.warning(message)
        self._add("warning", message)

    def error(self, message: str) -> None:
        logger.error(message)
        self._add("error", message)

    def drain(self) -> list[Notification]:
        """Return and clear buffered messages."""
        messages = list(self._messages)
        self._messages.clear()
        return messages
