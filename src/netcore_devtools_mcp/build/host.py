"""Process-backed task host and the build-and-wait helper.

ProcessTaskHost runs build tasks as child processes and reports
completion to subscribers. execute_and_wait correlates a completion
with the execution it started and races it against a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..errors import BuildFailure
from ..host import Notifier, TaskCompletionListener, TaskHost
from ..timers import Scheduler
from .state import BuildOutcome, TaskExecution
from .tasks import BuildTask

logger = logging.getLogger(__name__)

# Output buffer limits
MAX_OUTPUT_BYTES: int = 5_000_000
MAX_OUTPUT_LINE: int = 10_000


class ProcessTaskHost:
    """Runs BuildTasks with asyncio subprocesses.

    execute_task returns as soon as the process has started. The exit code
    is delivered to on_task_completed listeners once the process exits.
    """

    def __init__(self) -> None:
        self._listeners: list[TaskCompletionListener] = []
        self._running: dict[int, asyncio.subprocess.Process] = {}
        self._watchers: set[asyncio.Task[None]] = set()

    @property
    def running_count(self) -> int:
        return len(self._running)

    async def execute_task(self, task: BuildTask) -> TaskExecution:
        execution = TaskExecution(task)
        logger.info(f"Running task '{task.name}': {' '.join(task.command)} (cwd={task.cwd})")
        try:
            # Never use a shell
            process = await asyncio.create_subprocess_exec(
                task.program,
                *task.args,
                cwd=task.cwd or None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise BuildFailure(f"Failed to start {task.program}: {e}") from e

        self._running[execution.execution_id] = process
        watcher = asyncio.create_task(self._watch(execution, process))
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        return execution

    async def _watch(self, execution: TaskExecution, process: asyncio.subprocess.Process) -> None:
        lines: list[str] = []
        total = 0
        try:
            if process.stdout is not None:
                while True:
                    raw = await process.stdout.readline()
                    if not raw:
                        break
                    decoded = raw.decode("utf-8", errors="replace")
                    if len(decoded) > MAX_OUTPUT_LINE:
                        decoded = decoded[:MAX_OUTPUT_LINE] + "...[truncated]\n"
                    lines.append(decoded)
                    total += len(decoded)
                    while total > MAX_OUTPUT_BYTES and lines:
                        total -= len(lines.pop(0))
            exit_code = await process.wait()
        finally:
            self._running.pop(execution.execution_id, None)

        execution.output = "".join(lines)
        logger.info(f"Task '{execution.task.name}' exited with code {exit_code}")
        self._notify(execution, exit_code)

    def on_task_completed(self, listener: TaskCompletionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def _notify(self, execution: TaskExecution, exit_code: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(execution, exit_code)
            except Exception:
                logger.exception("Task completion listener error")

    async def terminate_all(self) -> None:
        """Kill every running build process."""
        for process in list(self._running.values()):
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
        if self._watchers:
            await asyncio.gather(*self._watchers, return_exceptions=True)


async def execute_and_wait(
    host: TaskHost,
    task: BuildTask,
    scheduler: Scheduler,
    timeout: float,
) -> BuildOutcome:
    """Run a task and wait for its completion or the timeout.

    The completion listener is attached before the task starts, so a
    completion reported while execute_task is still returning is kept and
    matched once the execution handle is known. Whichever of completion and
    timeout fires first decides the outcome; the other is ignored.

    Returns:
        BuildOutcome; never raises for build failures
    """
    loop = asyncio.get_running_loop()
    done: asyncio.Future[BuildOutcome] = loop.create_future()
    started = scheduler.now()
    execution: TaskExecution | None = None
    early: list[tuple[TaskExecution, int]] = []

    def finish(outcome: BuildOutcome) -> None:
        if done.done():
            return
        outcome.duration_ms = (scheduler.now() - started) * 1000
        done.set_result(outcome)

    def on_completed(completed: TaskExecution, exit_code: int) -> None:
        if execution is None:
            early.append((completed, exit_code))
        elif completed is execution:
            finish(BuildOutcome(task.name, exit_code=exit_code, output=completed.output))

    dispose = host.on_task_completed(on_completed)
    try:
        try:
            execution = await host.execute_task(task)
        except (BuildFailure, OSError) as e:
            logger.warning(f"Task '{task.name}' could not start: {e}")
            return BuildOutcome(task.name, error=str(e))

        for completed, exit_code in early:
            if completed is execution:
                finish(BuildOutcome(task.name, exit_code=exit_code, output=completed.output))
                break

        scheduler.call_later(timeout, lambda: finish(BuildOutcome(task.name, timed_out=True)))
        return await done
    finally:
        dispose()
