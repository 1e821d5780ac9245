"""File, folder and solution item operations.

Every operation that changes a project's directory invalidates that
project's cached contents so the next expansion re-scans it.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from typing import Final

from ..errors import ItemOperationError, ManifestParseError
from .grammar import (
    FOLDER_TYPE_GUID,
    SolutionDeclaration,
    add_declaration,
    add_nesting,
    is_project_manifest,
    new_guid,
    project_type_guid,
)
from .model import NodeKind, SolutionModel, TreeNode

logger = logging.getLogger(__name__)

INVALID_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r'[<>:"/\\|?*]')

DEFAULT_NAMESPACE: Final[str] = "MyNamespace"

FILE_TEMPLATES: Final[dict[str, str]] = {
    "class": "using System;\n\nnamespace {ns}\n{{\n    public class {name}\n    {{\n    }}\n}}\n",
    "interface": "using System;\n\nnamespace {ns}\n{{\n    public interface {name}\n    {{\n    }}\n}}\n",
    "enum": "using System;\n\nnamespace {ns}\n{{\n    public enum {name}\n    {{\n    }}\n}}\n",
}


def validate_name(name: str) -> str:
    """Reject empty names and names with path or reserved characters."""
    name = (name or "").strip()
    if not name:
        raise ItemOperationError("Name cannot be empty")
    if INVALID_NAME_PATTERN.search(name):
        raise ItemOperationError(f"Name contains invalid characters: {name}")
    return name


def target_directory(node: TreeNode) -> str:
    """Directory that new items under node are created in."""
    if node.kind == NodeKind.PROJECT:
        return os.path.dirname(node.identity)
    if node.kind == NodeKind.PROJECT_FOLDER:
        return node.identity
    if node.kind == NodeKind.PROJECT_FILE:
        return os.path.dirname(node.identity)
    raise ItemOperationError(f"Cannot create items under {node.kind.value} '{node.label}'")


def infer_namespace(directory: str) -> str:
    """Name of the nearest project manifest at or above directory."""
    current = os.path.abspath(directory)
    while True:
        try:
            names = os.listdir(current)
        except OSError:
            names = []
        for name in sorted(names):
            if is_project_manifest(name):
                return os.path.splitext(name)[0]
        parent = os.path.dirname(current)
        if parent == current:
            return DEFAULT_NAMESPACE
        current = parent


def create_folder(model: SolutionModel, node: TreeNode, name: str) -> str:
    """Create a folder under a project or project folder.

    Returns:
        Absolute path of the new folder
    """
    if node.kind not in (NodeKind.PROJECT, NodeKind.PROJECT_FOLDER):
        raise ItemOperationError(f"Cannot create folder under {node.kind.value}")
    name = validate_name(name)
    path = os.path.join(target_directory(node), name)
    if os.path.exists(path):
        raise ItemOperationError(f'Folder "{name}" already exists')
    try:
        os.makedirs(path)
    except OSError as e:
        raise ItemOperationError(f"Failed to create folder: {e}") from e

    model.invalidate_for_path(path)
    logger.info(f"Created folder {path}")
    return path


def create_file(
    model: SolutionModel,
    node: TreeNode,
    name: str,
    template: str = "class",
    file_name: str | None = None,
    content: str | None = None,
    overwrite: bool = False,
) -> str:
    """Create a source file from a template.

    Args:
        model: Solution model whose cache is invalidated
        node: Project, project folder or file (its folder is used)
        name: Type name (without extension)
        template: "class", "interface", "enum" or "custom"
        file_name: File name with extension, for custom files
        content: Body for custom files
        overwrite: Replace an existing file

    Returns:
        Absolute path of the new file
    """
    name = validate_name(name)
    directory = target_directory(node)

    if template == "custom":
        file_name = validate_name(file_name or f"{name}.cs")
        body = content if content is not None else "// New file"
    elif template in FILE_TEMPLATES:
        file_name = f"{name}.cs"
        body = FILE_TEMPLATES[template].format(ns=infer_namespace(directory), name=name)
    else:
        raise ItemOperationError(f"Unknown file template: {template}")

    path = os.path.join(directory, file_name)
    if os.path.exists(path) and not overwrite:
        raise ItemOperationError(f"File {file_name} already exists")
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(body)
    except OSError as e:
        raise ItemOperationError(f"Failed to create file: {e}") from e

    model.invalidate_for_path(path)
    logger.info(f"Created file {path}")
    return path


def rename_item(model: SolutionModel, node: TreeNode, new_name: str) -> str:
    """Rename a project file or folder in place.

    Returns:
        The new absolute path
    """
    if node.kind not in (NodeKind.PROJECT_FILE, NodeKind.PROJECT_FOLDER):
        raise ItemOperationError("Rename is only supported for project files and folders")
    new_name = validate_name(new_name)
    old_path = node.identity
    new_path = os.path.join(os.path.dirname(old_path), new_name)
    if new_name == node.label:
        return old_path
    if os.path.exists(new_path):
        raise ItemOperationError("A file or folder with the target name already exists")
    try:
        os.rename(old_path, new_path)
    except OSError as e:
        raise ItemOperationError(f"Failed to rename: {e}") from e

    model.invalidate_for_path(old_path)
    logger.info(f"Renamed {old_path} -> {new_path}")
    return new_path


def delete_item(model: SolutionModel, node: TreeNode) -> None:
    """Delete a project file, or a project folder with everything in it."""
    path = node.identity
    try:
        if node.kind == NodeKind.PROJECT_FOLDER:
            shutil.rmtree(path)
        elif node.kind == NodeKind.PROJECT_FILE:
            os.remove(path)
        else:
            raise ItemOperationError(f"Cannot delete {node.kind.value} '{node.label}'")
    except OSError as e:
        raise ItemOperationError(f"Failed to delete {node.label}: {e}") from e

    model.invalidate_for_path(path)
    logger.info(f"Deleted {path}")


def _read_solution(model: SolutionModel) -> tuple[str, str]:
    # utf-8 without -sig and newline="" keep a BOM and CRLF endings in the text
    if model.solution_path is None:
        raise ItemOperationError("No solution is loaded. Open a .sln first.")
    try:
        with open(model.solution_path, encoding="utf-8", newline="") as f:
            return model.solution_path, f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ItemOperationError(f"Cannot read solution: {e}") from e


def _write_solution(model: SolutionModel, path: str, text: str) -> None:
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        model.load(path)
    except (OSError, ManifestParseError) as e:
        raise ItemOperationError(f"Failed to update solution: {e}") from e


def add_solution_folder(
    model: SolutionModel, name: str, parent: TreeNode | None = None
) -> TreeNode:
    """Declare a new solution folder, optionally nested under another.

    A matching directory is created next to the solution when possible.

    Returns:
        The new folder node from the reloaded tree
    """
    name = validate_name(name)
    sln_path, text = _read_solution(model)
    solution_dir = os.path.dirname(sln_path)

    relative_path = name
    if parent is not None:
        if parent.kind != NodeKind.SOLUTION_FOLDER or not parent.guid:
            raise ItemOperationError("Solution folders can only be nested in solution folders")
        relative_path = f"{parent.label}/{name}"

    guid = new_guid()
    text = add_declaration(
        text,
        SolutionDeclaration(type_guid=FOLDER_TYPE_GUID, name=name, path=relative_path, guid=guid),
    )
    if parent is not None:
        text = add_nesting(text, guid, parent.guid)

    disk_path = os.path.join(solution_dir, *relative_path.split("/"))
    try:
        os.makedirs(disk_path, exist_ok=True)
    except OSError as e:
        logger.warning(f"Failed to create folder on disk {disk_path}: {e}")

    _write_solution(model, sln_path, text)
    logger.info(f"Added solution folder {name} ({guid})")
    return model.items[guid]


def add_project_to_solution(
    model: SolutionModel, project_path: str, name: str | None = None
) -> TreeNode:
    """Declare an existing project manifest in the loaded solution.

    Returns:
        The new project node from the reloaded tree
    """
    project_path = os.path.abspath(project_path)
    if not is_project_manifest(project_path) or not os.path.isfile(project_path):
        raise ItemOperationError(f"Not a project manifest: {project_path}")
    sln_path, text = _read_solution(model)

    relative = os.path.relpath(project_path, os.path.dirname(sln_path)).replace(os.sep, "/")
    guid = new_guid()
    text = add_declaration(
        text,
        SolutionDeclaration(
            type_guid=project_type_guid(project_path),
            name=name or os.path.splitext(os.path.basename(project_path))[0],
            path=relative,
            guid=guid,
        ),
    )
    _write_solution(model, sln_path, text)
    logger.info(f"Added project {relative} to solution ({guid})")
    return model.items[guid]
