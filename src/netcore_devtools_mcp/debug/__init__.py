"""Debug session coordination: launch path, restart detection, client host."""

from .coordinator import DebugSessionCoordinator
from .host import ClientDebugHost
from .launcher import LaunchResult, ProjectLauncher, make_debug_config, output_assembly_path
from .state import DebugSessionRecord, SessionPhase, TerminationMarker

__all__ = [
    "ClientDebugHost",
    "DebugSessionCoordinator",
    "DebugSessionRecord",
    "LaunchResult",
    "ProjectLauncher",
    "SessionPhase",
    "TerminationMarker",
    "make_debug_config",
    "output_assembly_path",
]
