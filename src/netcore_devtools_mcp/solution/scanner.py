"""Project directory scanner.

Produces a nested mapping of name -> absolute file path (leaf) or
name -> mapping (subdirectory). Build output, tooling and VCS directories
are skipped, as are manifest and per-user settings files. Directories
with nothing left in them after exclusion are omitted.
"""

from __future__ import annotations

import logging
import os
from typing import Final, Union

from .grammar import PROJECT_EXTENSIONS

logger = logging.getLogger(__name__)

EXCLUDED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {"bin", "obj", ".vs", ".vscode", "node_modules", "packages", ".git"}
)

EXCLUDED_FILE_SUFFIXES: Final[tuple[str, ...]] = (*PROJECT_EXTENSIONS, ".user", ".suo")

# Keys are entry names; values are either sub-trees or absolute file paths
ScanTree = dict[str, Union["ScanTree", str]]


def is_excluded_directory(name: str) -> bool:
    return name.lower() in EXCLUDED_DIRECTORIES


def is_excluded_file(name: str) -> bool:
    return name.lower().endswith(EXCLUDED_FILE_SUFFIXES)


def scan_directory(root: str) -> ScanTree:
    """Scan a project directory into a nested name tree.

    Traversal uses an explicit stack so deep trees do not hit the
    recursion limit.

    Args:
        root: Project directory

    Returns:
        Nested mapping; empty if root is unreadable or holds nothing
    """
    tree: ScanTree = {}
    stack: list[tuple[str, ScanTree]] = [(root, tree)]
    # (parent tree, name, subtree) in visit order; parents precede children
    visited: list[tuple[ScanTree, str, ScanTree]] = []

    while stack:
        directory, node = stack.pop()
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.is_dir(follow_symlinks=False):
                        if is_excluded_directory(entry.name):
                            continue
                        subtree: ScanTree = {}
                        node[entry.name] = subtree
                        visited.append((node, entry.name, subtree))
                        stack.append((entry.path, subtree))
                    elif entry.is_file():
                        if is_excluded_file(entry.name):
                            continue
                        node[entry.name] = os.path.abspath(entry.path)
        except OSError as e:
            logger.warning(f"Error scanning directory {directory}: {e}")

    # Children are always visited after their parent, so walking backwards
    # prunes the deepest empty directories first.
    for parent, name, subtree in reversed(visited):
        if not subtree:
            del parent[name]

    return tree
