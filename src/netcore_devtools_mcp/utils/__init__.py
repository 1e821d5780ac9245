"""Utility modules for netcore-devtools-mcp."""

from .project import find_solution_files, find_solution_root, parse_file_uri, resolve_workspace_root

__all__ = [
    "find_solution_files",
    "find_solution_root",
    "parse_file_uri",
    "resolve_workspace_root",
]
