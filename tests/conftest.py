"""Pytest fixtures for netcore-devtools-mcp tests."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from netcore_devtools_mcp.build.state import TaskExecution  # noqa: E402

APP_GUID = "11111111-1111-1111-1111-111111111111"
LIB_GUID = "22222222-2222-2222-2222-222222222222"
SRC_FOLDER_GUID = "33333333-3333-3333-3333-333333333333"
TESTS_FOLDER_GUID = "44444444-4444-4444-4444-444444444444"
MISSING_GUID = "55555555-5555-5555-5555-555555555555"

SAMPLE_SOLUTION = """
Microsoft Visual Studio Solution File, Format Version 12.00
# Visual Studio Version 17
Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "App", "src\\App\\App.csproj", "{{{app}}}"
EndProject
Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "Lib", "src\\Lib\\Lib.csproj", "{{{lib}}}"
EndProject
Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "src", "src", "{{{src}}}"
EndProject
Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "tests", "tests", "{{{tests}}}"
EndProject
Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "Gone", "gone\\Gone.csproj", "{{{missing}}}"
EndProject
Global
\tGlobalSection(SolutionConfigurationPlatforms) = preSolution
\t\tDebug|Any CPU = Debug|Any CPU
\tEndGlobalSection
\tGlobalSection(NestedProjects) = preSolution
\t\t{{{app}}} = {{{src}}}
\tEndGlobalSection
EndGlobal
""".format(app=APP_GUID, lib=LIB_GUID, src=SRC_FOLDER_GUID, tests=TESTS_FOLDER_GUID, missing=MISSING_GUID)

APP_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <OutputType>Exe</OutputType>
    <TargetFramework>net6.0</TargetFramework>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Newtonsoft.Json" Version="13.0.3" />
    <PackageReference Version="1.0.0" Include="Serilog" />
  </ItemGroup>
</Project>
"""

LIB_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
  </PropertyGroup>
</Project>
"""


def write(path, content=""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def sample_solution(tmp_path):
    """A solution with two projects, two folders and one missing project."""
    write(tmp_path / "Sample.sln", SAMPLE_SOLUTION)

    app = tmp_path / "src" / "App"
    write(app / "App.csproj", APP_PROJECT)
    write(app / "Program.cs", "class Program {}")
    write(app / "Models" / "User.cs", "class User {}")
    write(app / "Models" / "Nested" / "Deep.cs", "class Deep {}")
    write(app / "bin" / "Debug" / "net6.0" / "App.dll", "")
    write(app / "obj" / "project.assets.json", "{}")
    write(app / "App.csproj.user", "")
    (app / "Empty" / "AlsoEmpty").mkdir(parents=True)

    lib = tmp_path / "src" / "Lib"
    write(lib / "Lib.csproj", LIB_PROJECT)
    write(lib / "Class1.cs", "class Class1 {}")

    return tmp_path / "Sample.sln"


class FakeTimer:
    """Timer handle recorded by FakeScheduler."""

    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when advance() is called."""

    def __init__(self):
        self.time = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.time + delay, callback)
        self.timers.append(timer)
        return timer

    def now(self):
        return self.time

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds):
        """Move the clock forward and fire due timers in order."""
        self.time += seconds
        due = sorted(
            (t for t in self.timers if not t.cancelled and t.when <= self.time),
            key=lambda t: t.when,
        )
        for timer in due:
            self.timers.remove(timer)
            timer.callback()


class FakeTaskHost:
    """Task host that completes executions on demand.

    With auto_exit_code set, every execution completes immediately with it.
    """

    def __init__(self, auto_exit_code=None):
        self.auto_exit_code = auto_exit_code
        self.executed = []
        self.listeners = []

    async def execute_task(self, task):
        execution = TaskExecution(task)
        self.executed.append(execution)
        if self.auto_exit_code is not None:
            self.complete(execution, self.auto_exit_code)
        return execution

    def on_task_completed(self, listener):
        self.listeners.append(listener)

        def dispose():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return dispose

    def complete(self, execution, exit_code):
        for listener in list(self.listeners):
            listener(execution, exit_code)


class FakeDebugHost:
    """Debug host that records start/stop requests."""

    def __init__(self, accept=True):
        self.accept = accept
        self.started = []
        self.stopped = []

    async def start_debugging(self, configuration):
        self.started.append(configuration)
        return self.accept

    async def stop_debugging(self, session_name):
        self.stopped.append(session_name)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def task_host():
    return FakeTaskHost(auto_exit_code=0)


@pytest.fixture
def debug_host():
    return FakeDebugHost()
