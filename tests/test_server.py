"""Tests for the MCP server surface and workspace wiring."""

from unittest.mock import AsyncMock

import pytest

from netcore_devtools_mcp import server
from netcore_devtools_mcp.debug.state import SessionPhase
from netcore_devtools_mcp.errors import ManifestParseError
from netcore_devtools_mcp.workspace import Workspace

from conftest import FakeScheduler, FakeTaskHost

EXPECTED_TOOLS = {
    "open_solution",
    "close_solution",
    "get_children",
    "find_item",
    "find_project_for_file",
    "refresh_project",
    "new_folder",
    "new_file",
    "rename_item",
    "delete_item",
    "new_solution_folder",
    "add_existing_project",
    "build_project",
    "debug_project",
    "debug_session_started",
    "debug_session_terminated",
    "get_debug_requests",
    "get_debug_sessions",
    "get_notifications",
}


@pytest.fixture(autouse=True)
def fresh_workspace():
    server.reset_workspace()
    yield
    server.reset_workspace()


class TestCreateServer:
    """Tests for create_server."""

    @pytest.mark.asyncio
    async def test_tools_registered(self, tmp_path):
        mcp = server.create_server(str(tmp_path))
        tools = await mcp.list_tools()

        assert EXPECTED_TOOLS <= {t.name for t in tools}

    @pytest.mark.asyncio
    async def test_resources_registered(self, tmp_path):
        mcp = server.create_server(str(tmp_path))
        resources = await mcp.list_resources()

        uris = {str(r.uri) for r in resources}
        assert {"solution://tree", "debug://sessions", "devtools://notifications"} <= uris

    def test_auto_opens_single_solution(self, sample_solution):
        server.create_server(str(sample_solution.parent))
        assert server.get_workspace().model.solution_path == str(sample_solution)

    def test_explicit_solution(self, sample_solution, tmp_path):
        server.create_server(str(tmp_path), solution=str(sample_solution))
        assert server.get_workspace().model.is_loaded

    def test_bad_solution_does_not_fail_startup(self, tmp_path):
        server.create_server(str(tmp_path), solution=str(tmp_path / "Nope.sln"))
        assert not server.get_workspace().model.is_loaded


class TestWorkspace:
    """Tests for Workspace."""

    def test_open_single_solution(self, sample_solution):
        workspace = Workspace(str(sample_solution.parent), scheduler=FakeScheduler())
        node = workspace.open_solution()

        assert node.label == "Sample"
        assert workspace.notifier.messages[-1].message.startswith("Opened solution Sample")

    def test_open_relative_path(self, sample_solution):
        workspace = Workspace(str(sample_solution.parent), scheduler=FakeScheduler())
        workspace.open_solution("Sample.sln")
        assert workspace.model.solution_path == str(sample_solution)

    def test_open_ambiguous(self, sample_solution):
        (sample_solution.parent / "Other.sln").write_text("")
        workspace = Workspace(str(sample_solution.parent), scheduler=FakeScheduler())

        with pytest.raises(ManifestParseError, match="Multiple solutions"):
            workspace.open_solution()
        assert workspace.auto_open() is None

    def test_open_none_found(self, tmp_path):
        workspace = Workspace(str(tmp_path), scheduler=FakeScheduler())
        with pytest.raises(ManifestParseError, match="No .sln"):
            workspace.open_solution()

    @pytest.mark.asyncio
    async def test_debug_flow_through_client_host(self, sample_solution):
        """Test launch, restart detection and queued requests end to end."""
        workspace = Workspace(str(sample_solution.parent), scheduler=FakeScheduler())
        task_host = FakeTaskHost(auto_exit_code=0)
        workspace.launcher._task_host = task_host
        workspace.coordinator._task_host = task_host

        app = sample_solution.parent / "src" / "App" / "App.csproj"
        result = await workspace.launcher.debug_project(str(app))
        assert result.started

        requests = workspace.debug_host.drain_requests()
        assert requests[0]["action"] == "start"
        assert requests[0]["configuration"]["name"] == "App"

        coordinator = workspace.coordinator
        await coordinator.on_session_start("App")
        coordinator.on_session_terminate("App")
        await coordinator.on_session_start("App")

        actions = [r["action"] for r in workspace.debug_host.drain_requests()]
        assert actions == ["stop", "start"]
        assert len(task_host.executed) == 2

        # the client reports the stop it was asked for before the relaunch starts
        coordinator.on_session_terminate("App")
        assert not coordinator.has_marker("App")

        await coordinator.on_session_start("App")
        assert coordinator.phase("App") == SessionPhase.RUNNING

    @pytest.mark.asyncio
    async def test_shutdown_terminates_builds(self, tmp_path):
        workspace = Workspace(str(tmp_path), scheduler=FakeScheduler())
        workspace.task_host.terminate_all = AsyncMock()

        await workspace.shutdown()

        workspace.task_host.terminate_all.assert_awaited_once()
