"""Solution model - the cached tree behind the solution explorer.

Tree shape:

    Solution
      ├─ SolutionFolder ─┬─ SolutionFolder ...
      │                  └─ Project
      └─ Project (lazily expanded, cached per manifest path)
           ├─ Dependencies ─ Dependency ...
           ├─ ProjectFolder ─ ProjectFile ...
           └─ ProjectFile

The top level is rebuilt wholesale on load/close. Project contents are
built on first expansion and cached until invalidated.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ManifestParseError
from .grammar import (
    DeclarationKind,
    classify_declaration,
    parse_project_manifest,
    parse_solution,
    resolve_declaration_path,
)
from .scanner import ScanTree, scan_directory

logger = logging.getLogger(__name__)

DEPENDENCIES_LABEL = "Dependencies"


class NodeKind(str, Enum):
    """Kinds of solution tree nodes."""

    SOLUTION = "solution"
    SOLUTION_FOLDER = "solutionFolder"
    PROJECT = "project"
    PROJECT_FOLDER = "projectFolder"
    PROJECT_FILE = "projectFile"
    DEPENDENCY_GROUP = "dependencies"
    DEPENDENCY = "dependency"


FOLDER_KINDS = frozenset({NodeKind.SOLUTION_FOLDER, NodeKind.PROJECT_FOLDER})

PATH_KINDS = frozenset(
    {NodeKind.SOLUTION, NodeKind.PROJECT, NodeKind.PROJECT_FOLDER, NodeKind.PROJECT_FILE}
)


def normalize_path(path: str) -> str:
    """Case-folded, forward-slash form of a path used for comparisons."""
    normalized = path.replace("\\", "/").lower()
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized


def _parent_dir(normalized: str) -> str:
    return normalized.rsplit("/", 1)[0] if "/" in normalized else ""


def is_under(path: str, directory: str) -> bool:
    """Whether path equals or lies inside directory (both normalized)."""
    if not directory:
        return False
    return path == directory or path.startswith(directory.rstrip("/") + "/")


@dataclass(eq=False)
class TreeNode:
    """One entry in the solution tree."""

    label: str
    identity: str
    kind: NodeKind
    children: list[TreeNode] = field(default_factory=list)
    guid: str | None = None
    parent: TreeNode | None = field(default=None, repr=False)

    @property
    def path(self) -> str | None:
        """File-system path for path-backed kinds."""
        return self.identity if self.kind in PATH_KINDS else None

    @property
    def is_folder(self) -> bool:
        return self.kind in FOLDER_KINDS

    def add_child(self, child: TreeNode) -> None:
        """Attach child here, detaching it from any previous parent."""
        if child.parent is self:
            return
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)

    def to_dict(self, depth: int = 0) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Args:
            depth: How many levels of children to include
        """
        result: dict[str, Any] = {
            "label": self.label,
            "kind": self.kind.value,
            "identity": self.identity,
        }
        if self.guid:
            result["guid"] = self.guid
        if depth > 0 and self.children:
            result["children"] = [c.to_dict(depth - 1) for c in sort_nodes(self.children)]
        return result


def _sort_rank(node: TreeNode) -> int:
    if node.kind == NodeKind.DEPENDENCY_GROUP:
        return 0
    return 1 if node.is_folder else 2


def sort_nodes(nodes: list[TreeNode]) -> list[TreeNode]:
    """Folders before leaves, then by label (case-insensitive)."""
    return sorted(nodes, key=lambda n: (_sort_rank(n), n.label.casefold(), n.label))


def _project_name(manifest_path: str) -> str:
    return os.path.splitext(os.path.basename(manifest_path))[0]


class SolutionModel:
    """Owns the solution tree, the GUID index and the project content cache."""

    def __init__(self) -> None:
        self._solution_path: str | None = None
        self._solution_node: TreeNode | None = None
        self._root_items: list[TreeNode] = []
        self._items: dict[str, TreeNode] = {}  # GUID -> node
        self._content_cache: dict[str, list[TreeNode]] = {}  # manifest path -> content
        self._file_index: dict[str, dict[str, TreeNode]] = {}  # manifest path -> files

    @property
    def solution_path(self) -> str | None:
        return self._solution_path

    @property
    def is_loaded(self) -> bool:
        return self._solution_node is not None

    @property
    def solution_node(self) -> TreeNode | None:
        return self._solution_node

    @property
    def root_items(self) -> list[TreeNode]:
        return list(self._root_items)

    @property
    def items(self) -> dict[str, TreeNode]:
        """GUID index of solution folders and projects."""
        return dict(self._items)

    def projects(self) -> list[TreeNode]:
        """Project nodes in index insertion order."""
        return [n for n in self._items.values() if n.kind == NodeKind.PROJECT]

    def is_cached(self, project_path: str) -> bool:
        return project_path in self._content_cache

    # Loading

    def load(self, manifest_path: str) -> TreeNode:
        """Parse a solution manifest and rebuild the tree.

        On read failure the previous state is kept. Declarations the
        grammar does not recognize are skipped.

        Args:
            manifest_path: Path to the .sln file

        Returns:
            The new solution node

        Raises:
            ManifestParseError: If the manifest cannot be read
        """
        manifest_path = os.path.abspath(manifest_path)
        text = _read_text(manifest_path)
        parsed = parse_solution(text)
        solution_dir = os.path.dirname(manifest_path)

        items: dict[str, TreeNode] = {}
        for decl in parsed.declarations:
            kind = classify_declaration(decl, solution_dir)
            if kind == DeclarationKind.FOLDER:
                items[decl.guid] = TreeNode(
                    label=decl.name,
                    identity=decl.guid,
                    kind=NodeKind.SOLUTION_FOLDER,
                    guid=decl.guid,
                )
            elif kind == DeclarationKind.PROJECT:
                items[decl.guid] = TreeNode(
                    label=decl.name,
                    identity=resolve_declaration_path(decl, solution_dir),
                    kind=NodeKind.PROJECT,
                    guid=decl.guid,
                )

        # Last mapping wins; cycles leave nodes unreachable from the roots
        for pair in parsed.nestings:
            child = items.get(pair.child)
            parent = items.get(pair.parent)
            if child is not None and parent is not None and child is not parent:
                parent.add_child(child)

        roots = sort_nodes([n for n in items.values() if n.parent is None])
        solution_node = TreeNode(
            label=os.path.splitext(os.path.basename(manifest_path))[0],
            identity=manifest_path,
            kind=NodeKind.SOLUTION,
        )
        for root in roots:
            solution_node.add_child(root)

        self._content_cache.clear()
        self._file_index.clear()
        self._items = items
        self._root_items = roots
        self._solution_node = solution_node
        self._solution_path = manifest_path

        folders = sum(1 for n in items.values() if n.kind == NodeKind.SOLUTION_FOLDER)
        logger.info(
            f"Loaded solution {manifest_path}: {len(items) - folders} projects, "
            f"{folders} folders, {len(roots)} root items"
        )
        return solution_node

    def reload(self) -> TreeNode | None:
        """Re-read the current manifest, if one is loaded."""
        if self._solution_path is None:
            return None
        return self.load(self._solution_path)

    def close(self) -> None:
        """Forget the loaded solution. Does not touch disk."""
        self._solution_path = None
        self._solution_node = None
        self._root_items = []
        self._items.clear()
        self._content_cache.clear()
        self._file_index.clear()
        logger.info("Solution closed")

    # Project contents

    def expand_project(self, project: TreeNode) -> list[TreeNode]:
        """Dependencies, folders and files of a project, from cache when possible.

        Raises:
            ManifestParseError: If the project manifest cannot be read
        """
        manifest_path = project.identity
        cached = self._content_cache.get(manifest_path)
        if cached is not None:
            return cached

        manifest = parse_project_manifest(_read_text(manifest_path))
        project_dir = os.path.dirname(manifest_path)
        files: dict[str, TreeNode] = {}
        content: list[TreeNode] = []

        if manifest.packages:
            group = TreeNode(
                label=DEPENDENCIES_LABEL,
                identity=f"{manifest_path}::dependencies",
                kind=NodeKind.DEPENDENCY_GROUP,
                parent=project,
            )
            for package in manifest.packages:
                group.add_child(
                    TreeNode(
                        label=package.label,
                        identity=f"{manifest_path}::{package.name}",
                        kind=NodeKind.DEPENDENCY,
                    )
                )
            content.append(group)

        for node in self._convert_scan(scan_directory(project_dir), project_dir, files):
            node.parent = project
            content.append(node)

        content = sort_nodes(content)
        self._content_cache[manifest_path] = content
        self._file_index[manifest_path] = files
        logger.debug(f"Expanded project {project.label}: {len(files)} files")
        return content

    def _convert_scan(
        self, tree: ScanTree, directory: str, files: dict[str, TreeNode]
    ) -> list[TreeNode]:
        nodes: list[TreeNode] = []
        for name, value in tree.items():
            if isinstance(value, str):
                node = TreeNode(label=name, identity=value, kind=NodeKind.PROJECT_FILE)
                files[normalize_path(value)] = node
            else:
                folder_path = os.path.join(directory, name)
                node = TreeNode(label=name, identity=folder_path, kind=NodeKind.PROJECT_FOLDER)
                for child in self._convert_scan(value, folder_path, files):
                    node.add_child(child)
                node.children = sort_nodes(node.children)
            nodes.append(node)
        return nodes

    def invalidate(self, project_path: str) -> bool:
        """Drop the cached contents of one project.

        Nodes already handed out from the stale entry are left as they are.

        Returns:
            True if an entry was removed
        """
        self._file_index.pop(project_path, None)
        if self._content_cache.pop(project_path, None) is None:
            return False
        logger.debug(f"Invalidated project cache: {project_path}")
        return True

    def invalidate_for_path(self, path: str) -> TreeNode | None:
        """Invalidate whichever project owns path. Returns that project."""
        project = self.find_owning_project(path)
        if project is not None:
            self.invalidate(project.identity)
        return project

    # Lookup

    def find_owning_project(self, file_path: str) -> TreeNode | None:
        """Project whose directory contains file_path.

        Projects are checked in index insertion order and the first match
        wins, so overlapping project directories resolve to whichever was
        declared first.
        """
        target = normalize_path(file_path)
        for node in self._items.values():
            if node.kind != NodeKind.PROJECT:
                continue
            if is_under(target, _parent_dir(normalize_path(node.identity))):
                return node
        return None

    def find_node_by_path(self, file_path: str) -> TreeNode | None:
        """Find the tree node for a path, expanding its project if needed.

        Returns None when the path is not inside any known project or no
        node matches.
        """
        owner = self.find_owning_project(file_path)
        if owner is None:
            return None
        target = normalize_path(file_path)

        stack: list[TreeNode] = list(reversed(self._root_items))
        while stack:
            node = stack.pop()
            if node.kind in PATH_KINDS and normalize_path(node.identity) == target:
                return node

            if node.kind == NodeKind.PROJECT:
                content = self._content_cache.get(node.identity)
                if content is None and node is owner:
                    try:
                        content = self.expand_project(node)
                    except ManifestParseError as e:
                        logger.warning(f"Error expanding project {node.label}: {e}")
                        content = None
                if content:
                    stack.extend(reversed(content))
            else:
                stack.extend(reversed(node.children))
        return None

    def lookup_file(self, file_path: str) -> TreeNode | None:
        """File node from the flat index of already expanded projects."""
        target = normalize_path(file_path)
        for files in self._file_index.values():
            node = files.get(target)
            if node is not None:
                return node
        return None

    def get_node(self, ref: str) -> TreeNode | None:
        """Resolve a GUID, a manifest path, a dependency identity or a project item path."""
        if self._solution_node is None:
            return None
        guid = ref.strip("{}").upper()
        if guid in self._items:
            return self._items[guid]
        if normalize_path(ref) == normalize_path(self._solution_node.identity):
            return self._solution_node
        manifest_ref = ref.split("::", 1)[0]
        for node in self._items.values():
            if node.kind != NodeKind.PROJECT:
                continue
            if normalize_path(node.identity) != normalize_path(manifest_ref):
                continue
            if manifest_ref == ref:
                return node
            # Synthesized dependency identity
            stack = list(self.expand_project(node))
            while stack:
                candidate = stack.pop()
                if candidate.identity == f"{node.identity}{ref[len(manifest_ref):]}":
                    return candidate
                if candidate.kind == NodeKind.DEPENDENCY_GROUP:
                    stack.extend(candidate.children)
            return None
        return self.find_node_by_path(ref)

    def get_children(self, node: TreeNode | None = None) -> list[TreeNode]:
        """Children in display order. None yields the solution node itself."""
        if self._solution_node is None:
            return []
        if node is None:
            return [self._solution_node]
        if node.kind == NodeKind.SOLUTION:
            return list(self._root_items)
        if node.kind == NodeKind.PROJECT:
            return self.expand_project(node)
        return sort_nodes(node.children)

    def reveal_path(self, node: TreeNode) -> list[TreeNode]:
        """Ancestors of node from the solution down, node last."""
        chain: list[TreeNode] = []
        current: TreeNode | None = node
        while current is not None:
            chain.append(current)
            current = current.parent
        chain.reverse()
        return chain

    def to_dict(self, depth: int = 2) -> dict[str, Any]:
        if self._solution_node is None:
            return {"loaded": False}
        return {
            "loaded": True,
            "solution": self._solution_node.to_dict(depth),
            "cachedProjects": sorted(self._content_cache),
        }


def _read_text(path: str) -> str:
    try:
        with open(path, encoding="utf-8-sig") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Cannot read manifest {path}: {e}", path=path) from e
