"""Workspace and solution discovery.

The workspace root comes from, in order:
1. NETCORE_DEVTOOLS_PROJECT_ROOT / MCP_PROJECT_ROOT environment variables
2. An explicit --project path
3. The startup CWD, walked up to the nearest .sln or project file
   (with --project-from-cwd), or used as-is
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from urllib.parse import unquote, urlparse

from ..solution.scanner import is_excluded_directory

logger = logging.getLogger(__name__)

ROOT_ENV_VARS: tuple[str, ...] = ("NETCORE_DEVTOOLS_PROJECT_ROOT", "MCP_PROJECT_ROOT")

# How deep below the root to look for .sln files
SOLUTION_SEARCH_DEPTH: int = 2


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to a Path.

    - Unix: file:///home/user/project → /home/user/project
    - Windows: file:///C:/Users/project → C:\\Users\\project

    Returns:
        Absolute path, or None for non-file or relative URIs
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)
    if sys.platform == "win32":
        # "/C:/path" -> "C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def to_local_path(path_or_uri: str) -> str | None:
    """Accept either a filesystem path or a file:// URI."""
    if path_or_uri.startswith("file:"):
        path = parse_file_uri(path_or_uri)
        return str(path) if path else None
    return os.path.abspath(path_or_uri)


def find_solution_root(start_dir: Path | None = None) -> Path:
    """Walk up from start_dir to the nearest directory with a .sln.

    Falls back to the nearest directory with a project file, then to
    start_dir itself.
    """
    current = (start_dir or Path.cwd()).resolve()
    candidates = [current, *current.parents]

    for directory in candidates:
        if any(directory.glob("*.sln")):
            return directory
    for directory in candidates:
        if any(directory.glob("*.csproj")) or any(directory.glob("*.fsproj")) or any(
            directory.glob("*.vbproj")
        ):
            return directory
    return current


def find_solution_files(root: str | Path, max_depth: int = SOLUTION_SEARCH_DEPTH) -> list[str]:
    """List .sln files at most max_depth directories below root.

    Excluded directories (bin, obj, .git, ...) are not searched.
    """
    found: list[str] = []
    stack: list[tuple[str, int]] = [(os.path.abspath(root), 0)]
    while stack:
        directory, depth = stack.pop()
        try:
            entries = list(os.scandir(directory))
        except OSError as e:
            logger.debug(f"Skipping {directory}: {e}")
            continue
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if depth < max_depth and not is_excluded_directory(entry.name):
                    stack.append((entry.path, depth + 1))
            elif entry.name.lower().endswith(".sln"):
                found.append(entry.path)
    return sorted(found, key=lambda p: (p.count(os.sep), p.lower()))


def resolve_workspace_root(
    explicit_path: str | None = None,
    use_cwd: bool = False,
    startup_cwd: str | None = None,
) -> Path | None:
    """Determine the workspace root at startup."""
    for env_var in ROOT_ENV_VARS:
        value = os.environ.get(env_var)
        if value:
            path = Path(value)
            if path.is_dir():
                logger.info(f"Using workspace root from {env_var}: {path}")
                return path
            logger.warning(f"{env_var}={value} - path does not exist or is not a directory")

    if explicit_path:
        path = Path(explicit_path)
        if path.is_dir():
            return path.resolve()
        logger.warning(f"Explicit project path not valid: {explicit_path}")

    if startup_cwd:
        if use_cwd:
            root = find_solution_root(Path(startup_cwd))
            logger.info(f"Using workspace root from CWD search: {root}")
            return root
        return Path(startup_cwd)

    logger.warning("Could not determine workspace root")
    return None
