"""Runtime configuration read from the environment.

Settings:
- NETCORE_DEVTOOLS_DOTNET: dotnet executable (default "dotnet")
- NETCORE_DEVTOOLS_CONFIGURATION: build configuration (default "Debug")
- NETCORE_DEVTOOLS_DEBUGGER: path to netcoredbg (optional)
- NETCORE_DEVTOOLS_RESTART_GRACE: restart detection window in seconds
- NETCORE_DEVTOOLS_BUILD_TIMEOUT: build completion timeout in seconds
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

from .build.tasks import ALLOWED_CONFIGURATIONS

logger = logging.getLogger(__name__)

DEFAULT_RESTART_GRACE_SECONDS: Final[float] = 2.0
DEFAULT_BUILD_TIMEOUT_SECONDS: Final[float] = 120.0
DEFAULT_CONFIGURATION: Final[str] = "Debug"


@dataclass
class DevToolsConfig:
    """Settings shared by the model, build registry and coordinator."""

    dotnet_path: str = "dotnet"
    """Executable used for build tasks."""

    configuration: str = DEFAULT_CONFIGURATION
    """Build configuration passed to dotnet build."""

    debugger_path: str | None = None
    """netcoredbg executable; launch configs use pipeTransport when set."""

    restart_grace_seconds: float = DEFAULT_RESTART_GRACE_SECONDS
    """How long after a termination a start counts as a restart."""

    build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS
    """How long to wait for a build completion before failing."""


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{name}={raw} is not a number, using {default}")
        return default
    if value <= 0:
        logger.warning(f"{name}={raw} must be positive, using {default}")
        return default
    return value


def _env_configuration(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if not raw:
        return default
    known = {c.lower(): c for c in ALLOWED_CONFIGURATIONS}
    value = known.get(raw.strip().lower())
    if value is None:
        logger.warning(f"{name}={raw} is not one of {sorted(ALLOWED_CONFIGURATIONS)}, using {default}")
        return default
    return value


def load_config() -> DevToolsConfig:
    """Build configuration from NETCORE_DEVTOOLS_* environment variables."""
    config = DevToolsConfig(
        dotnet_path=os.environ.get("NETCORE_DEVTOOLS_DOTNET") or "dotnet",
        configuration=_env_configuration(
            "NETCORE_DEVTOOLS_CONFIGURATION", DEFAULT_CONFIGURATION
        ),
        debugger_path=os.environ.get("NETCORE_DEVTOOLS_DEBUGGER") or None,
        restart_grace_seconds=_env_float(
            "NETCORE_DEVTOOLS_RESTART_GRACE", DEFAULT_RESTART_GRACE_SECONDS
        ),
        build_timeout_seconds=_env_float(
            "NETCORE_DEVTOOLS_BUILD_TIMEOUT", DEFAULT_BUILD_TIMEOUT_SECONDS
        ),
    )
    logger.debug(f"Loaded config: {config}")
    return config
