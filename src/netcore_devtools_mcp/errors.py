"""Exceptions raised by the solution model and build/debug coordination."""


class DevToolsError(Exception):
    """Base exception for netcore-devtools errors."""

    pass


class ManifestParseError(DevToolsError):
    """Raised when a solution or project manifest cannot be read."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ItemOperationError(DevToolsError):
    """Raised when a file, folder or solution item operation fails."""

    pass


class BuildFailure(DevToolsError):
    """Raised when a build exits nonzero or times out."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.timed_out = timed_out
