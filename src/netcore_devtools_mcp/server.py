"""MCP Server exposing the .NET solution explorer and build/debug coordination."""

from __future__ import annotations

import json
import logging
import os

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .errors import DevToolsError
from .solution import operations
from .solution.model import TreeNode
from .utils.project import to_local_path
from .workspace import Workspace

logger = logging.getLogger(__name__)

# Global workspace (single client mode)
_workspace: Workspace | None = None
_initial_root: str | None = None


def get_workspace() -> Workspace:
    """Get or create the workspace.

    Note: Single client mode - one solution and one coordinator per server.
    """
    global _workspace
    if _workspace is None:
        _workspace = Workspace(_initial_root)
    return _workspace


def reset_workspace() -> None:
    """Drop the global workspace (used by tests)."""
    global _workspace
    _workspace = None


def _node_list(nodes: list[TreeNode]) -> list[dict]:
    return [n.to_dict() for n in nodes]


def create_server(project_path: str | None = None, solution: str | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        project_path: Workspace root; relative paths given to tools
            are resolved against it
        solution: Solution to open on startup. Without it, the single
            .sln under the root (if exactly one exists) is opened.
    """
    global _initial_root
    _initial_root = project_path
    mcp = FastMCP("netcore-devtools-mcp")
    workspace = get_workspace()
    if project_path:
        workspace.set_root(project_path)

    if solution:
        try:
            workspace.open_solution(solution)
        except DevToolsError as e:
            logger.warning(f"Could not open {solution}: {e}")
    else:
        workspace.auto_open()

    async def notify_changed(ctx: Context, uri: str) -> None:
        """Notify client that a resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl(uri))
        except Exception:
            logger.debug(f"Resource update notification failed for {uri}")

    def require_node(ref: str) -> TreeNode:
        node = workspace.model.get_node(ref) or workspace.model.get_node(workspace.resolve_path(ref))
        if node is None:
            raise DevToolsError(f"Item not found: {ref}")
        return node

    # ============== Solution Tools ==============

    @mcp.tool()
    async def open_solution(ctx: Context, path: str | None = None) -> dict:
        """
        Open a .sln file and load its folders and projects.

        Without a path, the only .sln under the workspace root is opened.

        Args:
            path: Path to the .sln file (absolute or relative to the workspace root)
        """
        try:
            workspace.open_solution(path)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": workspace.model.to_dict(depth=2)}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def close_solution(ctx: Context) -> dict:
        """Close the current solution and drop all cached project contents."""
        try:
            workspace.close_solution()
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"loaded": False}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_children(item: str | None = None) -> dict:
        """
        List the children of a solution tree item in display order.

        Projects are expanded lazily (dependencies, folders, files) and cached.

        Args:
            item: GUID, path or dependency identity. Omit for the solution node.
        """
        try:
            model = workspace.model
            if not model.is_loaded:
                return {"success": False, "error": "No solution is loaded"}
            node = require_node(item) if item else None
            return {"success": True, "data": _node_list(model.get_children(node))}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def find_item(path: str) -> dict:
        """
        Find the tree item for a file or folder path and its ancestor chain.

        Returns data=null when the path is not inside any project.

        Args:
            path: File path or file:// URI
        """
        try:
            local = to_local_path(path)
            node = workspace.model.find_node_by_path(local) if local else None
            if node is None:
                return {"success": True, "data": None}
            return {
                "success": True,
                "data": {
                    "item": node.to_dict(),
                    "ancestors": _node_list(workspace.model.reveal_path(node)[:-1]),
                },
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def find_project_for_file(path: str) -> dict:
        """
        Find the project whose directory contains a file.

        Args:
            path: File path or file:// URI
        """
        try:
            local = to_local_path(path)
            project = workspace.model.find_owning_project(local) if local else None
            return {"success": True, "data": project.to_dict() if project else None}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def refresh_project(ctx: Context, project: str | None = None) -> dict:
        """
        Drop cached project contents so they are re-scanned on next expansion.

        Args:
            project: Project GUID or path. Omit to reload the whole solution.
        """
        try:
            model = workspace.model
            if project is None:
                model.reload()
                await notify_changed(ctx, "solution://tree")
                return {"success": True, "data": model.to_dict(depth=1)}
            node = require_node(project)
            removed = model.invalidate(node.identity)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"project": node.label, "invalidated": removed}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Item Tools ==============

    @mcp.tool()
    async def new_folder(ctx: Context, parent: str, name: str) -> dict:
        """
        Create a folder in a project or project folder.

        Args:
            parent: Project or folder GUID/path
            name: Folder name
        """
        try:
            path = operations.create_folder(workspace.model, require_node(parent), name)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"path": path}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def new_file(
        ctx: Context,
        parent: str,
        name: str,
        template: str = "class",
        file_name: str | None = None,
        content: str | None = None,
        overwrite: bool = False,
    ) -> dict:
        """
        Create a C# file from a template in a project or folder.

        The namespace is taken from the nearest project file name.

        Args:
            parent: Project, folder or file GUID/path (a file's folder is used)
            name: Type name without extension
            template: class, interface, enum or custom
            file_name: File name with extension (custom template only)
            content: File body (custom template only)
            overwrite: Replace an existing file
        """
        try:
            path = operations.create_file(
                workspace.model,
                require_node(parent),
                name,
                template=template,
                file_name=file_name,
                content=content,
                overwrite=overwrite,
            )
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"path": path}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def rename_item(ctx: Context, item: str, new_name: str) -> dict:
        """
        Rename a project file or folder.

        Args:
            item: File or folder path
            new_name: New name (no path separators)
        """
        try:
            path = operations.rename_item(workspace.model, require_node(item), new_name)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"path": path}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def delete_item(ctx: Context, item: str, confirm: bool = False) -> dict:
        """
        Delete a project file, or a project folder and everything in it.

        Args:
            item: File or folder path
            confirm: Must be True; deletion cannot be undone
        """
        try:
            if not confirm:
                return {
                    "success": False,
                    "error": "Deletion cannot be undone. Call again with confirm=True.",
                }
            node = require_node(item)
            operations.delete_item(workspace.model, node)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": {"deleted": node.identity}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def new_solution_folder(ctx: Context, name: str, parent: str | None = None) -> dict:
        """
        Add a solution folder to the .sln, optionally inside another one.

        Args:
            name: Folder name
            parent: GUID of the parent solution folder
        """
        try:
            parent_node = require_node(parent) if parent else None
            node = operations.add_solution_folder(workspace.model, name, parent_node)
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": node.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def add_existing_project(ctx: Context, project_path: str) -> dict:
        """
        Add an existing project file to the loaded solution.

        Args:
            project_path: Path to the .csproj/.fsproj/.vbproj file
        """
        try:
            node = operations.add_project_to_solution(
                workspace.model, workspace.resolve_path(project_path)
            )
            await notify_changed(ctx, "solution://tree")
            return {"success": True, "data": node.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Build & Debug Tools ==============

    @mcp.tool()
    async def build_project(project: str) -> dict:
        """
        Build a project with dotnet build and wait for the result.

        Args:
            project: Project GUID or path to the project file
        """
        try:
            node = workspace.model.get_node(project) if workspace.model.is_loaded else None
            path = node.identity if node is not None else workspace.resolve_path(project)
            outcome = await workspace.launcher.build_project(path)
            return {"success": outcome.success, "data": outcome.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def debug_project(ctx: Context, project: str) -> dict:
        """
        Build a project, then request a debug launch of its output assembly.

        The launch configuration is queued for the client; fetch it with
        get_debug_requests and start it. Report session start/termination
        with debug_session_started / debug_session_terminated so restarts
        are rebuilt before they run.

        Args:
            project: Project GUID or path to the project file
        """
        try:
            node = workspace.model.get_node(project) if workspace.model.is_loaded else None
            path = node.identity if node is not None else workspace.resolve_path(project)
            result = await workspace.launcher.debug_project(path)
            await notify_changed(ctx, "debug://sessions")
            return {"success": result.started, "data": result.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def debug_session_started(ctx: Context, session_name: str) -> dict:
        """
        Report that the client started a debug session.

        A start shortly after a termination of the same session is a
        restart: the session is stopped, rebuilt and relaunched.

        Args:
            session_name: Session name (the project name)
        """
        try:
            coordinator = workspace.coordinator
            await coordinator.on_session_start(session_name)
            await notify_changed(ctx, "debug://sessions")
            return {
                "success": True,
                "data": {
                    "sessionName": session_name,
                    "phase": coordinator.phase(session_name).value,
                    "requests": workspace.debug_host.pending,
                },
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def debug_session_terminated(ctx: Context, session_name: str) -> dict:
        """
        Report that a debug session ended.

        Args:
            session_name: Session name (the project name)
        """
        try:
            coordinator = workspace.coordinator
            coordinator.on_session_terminate(session_name)
            await notify_changed(ctx, "debug://sessions")
            return {
                "success": True,
                "data": {
                    "sessionName": session_name,
                    "phase": coordinator.phase(session_name).value,
                },
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_debug_requests() -> dict:
        """
        Fetch and clear queued debug launch/stop requests.

        Each request has action "start" (with a coreclr configuration) or
        "stop" (with a session name). Act on them in order.
        """
        try:
            return {"success": True, "data": workspace.debug_host.drain_requests()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_debug_sessions() -> dict:
        """Get coordinated debug sessions, their phases and pending restarts."""
        try:
            return {"success": True, "data": workspace.coordinator.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_notifications(clear: bool = True) -> dict:
        """
        Get user-facing messages (build results, restart notices, errors).

        Args:
            clear: Remove returned messages from the buffer
        """
        try:
            notifier = workspace.notifier
            messages = notifier.drain() if clear else notifier.messages
            return {"success": True, "data": [m.to_dict() for m in messages]}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Resources ==============

    @mcp.resource("solution://tree", mime_type="application/json")
    async def solution_tree_resource() -> str:
        """Loaded solution tree (JSON), two levels deep.

        Updates when: solution opened/closed, items created/renamed/deleted.
        """
        return json.dumps(workspace.model.to_dict(depth=2), indent=2)

    @mcp.resource("debug://sessions", mime_type="application/json")
    async def debug_sessions_resource() -> str:
        """Coordinated debug sessions (JSON).

        Updates when: a project is launched, a session starts or terminates.
        """
        return json.dumps(workspace.coordinator.to_dict(), indent=2)

    @mcp.resource("devtools://notifications", mime_type="application/json")
    async def notifications_resource() -> str:
        """Recent user-facing messages (JSON), oldest first."""
        return json.dumps([m.to_dict() for m in workspace.notifier.messages], indent=2)

    logger.info(f"NetCore DevTools MCP Server initialized (root: {workspace.root or os.getcwd()})")
    return mcp
