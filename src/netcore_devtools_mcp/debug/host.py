"""Debug host that hands launch/stop requests to the MCP client.

The server cannot start an editor debug session itself. Requests are
queued here; the client fetches them with get_debug_requests, acts on
them and reports session start/termination back through tools.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)

MAX_PENDING_REQUESTS = 100


class ClientDebugHost:
    """DebugHost that queues requests for the connected client."""

    def __init__(self, max_pending: int = MAX_PENDING_REQUESTS):
        self._requests: deque[dict[str, Any]] = deque(maxlen=max_pending)
        self._accepting = True

    @property
    def pending(self) -> list[dict[str, Any]]:
        return list(self._requests)

    def set_accepting(self, accepting: bool) -> None:
        """Refuse further launches while False (e.g. no client attached)."""
        self._accepting = accepting

    async def start_debugging(self, configuration: dict[str, Any]) -> bool:
        if not self._accepting:
            logger.warning(f"Launch of '{configuration.get('name')}' refused: host not accepting")
            return False
        self._requests.append(
            {"action": "start", "sessionName": configuration.get("name"), "configuration": configuration}
        )
        logger.info(f"Queued debug launch for '{configuration.get('name')}'")
        return True

    async def stop_debugging(self, session_name: str) -> None:
        self._requests.append({"action": "stop", "sessionName": session_name})
        logger.info(f"Queued debug stop for '{session_name}'")

    def drain_requests(self) -> list[dict[str, Any]]:
        """Return and clear queued requests, oldest first."""
        requests = list(self._requests)
        self._requests.clear()
        return requests
