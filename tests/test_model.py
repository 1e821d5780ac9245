"""Tests for the solution model."""

import os

import pytest

from netcore_devtools_mcp.errors import ManifestParseError
from netcore_devtools_mcp.solution.model import (
    NodeKind,
    SolutionModel,
    TreeNode,
    normalize_path,
    sort_nodes,
)

from conftest import APP_GUID, LIB_GUID, MISSING_GUID, SRC_FOLDER_GUID, TESTS_FOLDER_GUID


@pytest.fixture
def model(sample_solution):
    model = SolutionModel()
    model.load(str(sample_solution))
    return model


def _project(model, guid):
    return model.items[guid]


class TestLoad:
    """Tests for SolutionModel.load."""

    def test_indexes_folders_and_existing_projects(self, model):
        """Test N folders + M existing projects are indexed; missing ones skipped."""
        assert set(model.items) == {APP_GUID, LIB_GUID, SRC_FOLDER_GUID, TESTS_FOLDER_GUID}
        assert MISSING_GUID not in model.items

    def test_root_items_sorted_folders_first(self, model):
        """Test roots are the forest roots, folders before projects."""
        labels = [n.label for n in model.root_items]
        assert labels == ["src", "tests", "Lib"]

    def test_nesting_applied(self, model):
        """Test App is shown under the src folder."""
        src = model.items[SRC_FOLDER_GUID]
        app = model.items[APP_GUID]

        assert app.parent is src
        assert src.children == [app]
        assert app not in model.root_items

    def test_solution_node(self, model, sample_solution):
        """Test solution node wraps the root items."""
        node = model.solution_node
        assert node.kind == NodeKind.SOLUTION
        assert node.label == "Sample"
        assert node.identity == str(sample_solution)
        assert [c.label for c in sort_nodes(node.children)] == ["src", "tests", "Lib"]

    def test_project_identity_is_absolute_path(self, model, sample_solution):
        """Test project identity is the resolved manifest path."""
        app = model.items[APP_GUID]
        assert app.identity == os.path.join(str(sample_solution.parent), "src", "App", "App.csproj")
        assert app.kind == NodeKind.PROJECT

    def test_missing_manifest_raises_and_keeps_state(self, model, tmp_path):
        """Test a read failure leaves the previous tree in place."""
        before = model.solution_path

        with pytest.raises(ManifestParseError):
            model.load(str(tmp_path / "Missing.sln"))

        assert model.solution_path == before
        assert APP_GUID in model.items

    def test_forest_property(self, tmp_path):
        """Test N folders and M projects forming a forest yield N+M nodes and the forest roots."""
        lines = []
        nestings = []
        guids = {}
        for name in ("Zeta", "alpha", "Beta"):
            guids[name] = f"{len(guids):08d}-0000-0000-0000-000000000000"
            lines.append(
                f'Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "{name}", "{name}", "{{{guids[name]}}}"\nEndProject'
            )
        for name in ("P1", "p2"):
            guids[name] = f"{len(guids):08d}-0000-0000-0000-000000000000"
            (tmp_path / name).mkdir()
            (tmp_path / name / f"{name}.csproj").write_text("<Project />")
            lines.append(
                f'Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "{name}", "{name}\\{name}.csproj", "{{{guids[name]}}}"\nEndProject'
            )
        nestings.append(f"\t\t{{{guids['Beta']}}} = {{{guids['Zeta']}}}")
        nestings.append(f"\t\t{{{guids['P1']}}} = {{{guids['Beta']}}}")
        text = "\n".join(lines) + (
            "\nGlobal\n\tGlobalSection(NestedProjects) = preSolution\n"
            + "\n".join(nestings)
            + "\n\tEndGlobalSection\nEndGlobal\n"
        )
        sln = tmp_path / "Forest.sln"
        sln.write_text(text)

        model = SolutionModel()
        model.load(str(sln))

        assert len(model.items) == 5
        assert [n.label for n in model.root_items] == ["alpha", "Zeta", "p2"]

    def test_last_nesting_wins(self, tmp_path):
        """Test a child mapped to two parents ends under the last one only."""
        a, b, c = (f"{i:08d}-0000-0000-0000-000000000000" for i in range(3))
        text = "".join(
            f'Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "{n}", "{n}", "{{{g}}}"\nEndProject\n'
            for n, g in (("A", a), ("B", b), ("C", c))
        )
        text += (
            "Global\n\tGlobalSection(NestedProjects) = preSolution\n"
            f"\t\t{{{c}}} = {{{a}}}\n\t\t{{{c}}} = {{{b}}}\n"
            "\tEndGlobalSection\nEndGlobal\n"
        )
        sln = tmp_path / "Multi.sln"
        sln.write_text(text)

        model = SolutionModel()
        model.load(str(sln))

        assert model.items[c].parent is model.items[b]
        assert model.items[c] not in model.items[a].children

    def test_cycle_leaves_nodes_unreachable(self, tmp_path):
        """Test a nesting cycle produces no roots for its members."""
        a, b = (f"{i:08d}-0000-0000-0000-000000000000" for i in range(2))
        text = "".join(
            f'Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "{n}", "{n}", "{{{g}}}"\nEndProject\n'
            for n, g in (("A", a), ("B", b))
        )
        text += (
            "Global\n\tGlobalSection(NestedProjects) = preSolution\n"
            f"\t\t{{{a}}} = {{{b}}}\n\t\t{{{b}}} = {{{a}}}\n"
            "\tEndGlobalSection\nEndGlobal\n"
        )
        sln = tmp_path / "Cycle.sln"
        sln.write_text(text)

        model = SolutionModel()
        model.load(str(sln))

        assert len(model.items) == 2
        assert model.root_items == []

    def test_close_resets(self, model):
        """Test close drops the tree and every cache."""
        model.expand_project(model.items[LIB_GUID])
        model.close()

        assert not model.is_loaded
        assert model.items == {}
        assert model.root_items == []
        assert not model.is_cached(model.solution_path or "")


class TestExpandProject:
    """Tests for lazy project expansion and caching."""

    def test_contents(self, model):
        """Test dependencies first, then folders, then files."""
        content = model.expand_project(model.items[APP_GUID])
        assert [n.label for n in content] == ["Dependencies", "Models", "Program.cs"]
        assert content[0].kind == NodeKind.DEPENDENCY_GROUP
        assert content[1].kind == NodeKind.PROJECT_FOLDER
        assert content[2].kind == NodeKind.PROJECT_FILE

    def test_dependencies(self, model):
        """Test each PackageReference becomes a dependency node."""
        app = model.items[APP_GUID]
        group = model.expand_project(app)[0]

        assert [d.label for d in group.children] == ["Newtonsoft.Json (13.0.3)", "Serilog (1.0.0)"]
        assert group.identity == f"{app.identity}::dependencies"
        assert group.children[0].identity == f"{app.identity}::Newtonsoft.Json"

    def test_no_dependency_group_without_packages(self, model):
        """Test projects without packages have no Dependencies node."""
        content = model.expand_project(model.items[LIB_GUID])
        assert [n.label for n in content] == ["Class1.cs"]

    def test_excluded_content_absent(self, model):
        """Test bin/obj, user files and empty folders are not shown."""
        content = model.expand_project(model.items[APP_GUID])
        labels = {n.label for n in content}
        assert not labels & {"bin", "obj", "App.csproj", "App.csproj.user", "Empty"}

    def test_cached_object_identity(self, model):
        """Test two expansions without invalidation return the same object."""
        app = model.items[APP_GUID]
        first = model.expand_project(app)
        second = model.expand_project(app)

        assert first is second
        assert model.is_cached(app.identity)

    def test_invalidate_forces_rescan(self, model, sample_solution):
        """Test invalidate makes the next expansion re-scan the directory."""
        app = model.items[APP_GUID]
        first = model.expand_project(app)
        (sample_solution.parent / "src" / "App" / "Added.cs").write_text("")

        assert model.invalidate(app.identity) is True
        second = model.expand_project(app)

        assert second is not first
        assert "Added.cs" in [n.label for n in second]

    def test_invalidate_unknown(self, model):
        """Test invalidating an uncached project reports False."""
        assert model.invalidate("/nowhere/X.csproj") is False

    def test_unreadable_manifest_raises(self, model, sample_solution):
        """Test expansion of a project whose manifest vanished."""
        lib = model.items[LIB_GUID]
        os.remove(lib.identity)
        with pytest.raises(ManifestParseError):
            model.expand_project(lib)


class TestLookup:
    """Tests for path lookups."""

    def test_find_owning_project(self, model, sample_solution):
        """Test file inside a project directory resolves to it."""
        path = sample_solution.parent / "src" / "App" / "Models" / "User.cs"
        assert model.find_owning_project(str(path)) is model.items[APP_GUID]

    def test_find_owning_project_case_and_separators(self, model, sample_solution):
        """Test owning project is stable under case and separator variation."""
        path = str(sample_solution.parent / "src" / "App" / "Program.cs")
        variants = [path, path.upper(), path.lower(), path.replace("/", "\\")]

        results = {id(model.find_owning_project(v)) for v in variants}
        assert results == {id(model.items[APP_GUID])}

    def test_find_owning_project_outside(self, model, tmp_path):
        """Test paths outside every project return None."""
        assert model.find_owning_project(str(tmp_path / "README.md")) is None

    def test_sibling_prefix_not_matched(self, model, sample_solution):
        """Test src/AppExtra is not treated as inside src/App."""
        path = sample_solution.parent / "src" / "AppExtra" / "x.cs"
        assert model.find_owning_project(str(path)) is None

    def test_find_node_by_path_expands_nested_project(self, model, sample_solution):
        """Test lookup reaches files of a project nested in a solution folder."""
        path = sample_solution.parent / "src" / "App" / "Models" / "Nested" / "Deep.cs"
        node = model.find_node_by_path(str(path))

        assert node is not None
        assert node.kind == NodeKind.PROJECT_FILE
        assert node.label == "Deep.cs"
        assert model.is_cached(model.items[APP_GUID].identity)

    def test_find_node_by_path_folder(self, model, sample_solution):
        """Test lookup of a project folder."""
        node = model.find_node_by_path(str(sample_solution.parent / "src" / "App" / "Models"))
        assert node.kind == NodeKind.PROJECT_FOLDER

    def test_find_node_by_path_miss(self, model, sample_solution):
        """Test unknown files inside a project return None."""
        path = sample_solution.parent / "src" / "App" / "NoSuch.cs"
        assert model.find_node_by_path(str(path)) is None

    def test_lookup_file_after_expansion(self, model, sample_solution):
        """Test the flat file index answers after a project was expanded."""
        path = str(sample_solution.parent / "src" / "Lib" / "Class1.cs")
        assert model.lookup_file(path) is None

        model.expand_project(model.items[LIB_GUID])
        assert model.lookup_file(path.upper()).label == "Class1.cs"

    def test_reveal_path(self, model, sample_solution):
        """Test ancestor chain runs from the folder down to the node."""
        path = sample_solution.parent / "src" / "App" / "Models" / "User.cs"
        node = model.find_node_by_path(str(path))
        chain = [n.label for n in model.reveal_path(node)]

        assert chain == ["Sample", "src", "App", "Models", "User.cs"]

    def test_get_node_by_guid_and_path(self, model):
        """Test nodes resolve by braced GUID or manifest path."""
        app = model.items[APP_GUID]
        assert model.get_node("{" + APP_GUID.lower() + "}") is app
        assert model.get_node(app.identity) is app

    def test_get_node_dependency(self, model):
        """Test dependency identities resolve through the project cache."""
        app = model.items[APP_GUID]
        node = model.get_node(f"{app.identity}::Serilog")
        assert node.kind == NodeKind.DEPENDENCY

    def test_get_children(self, model):
        """Test children of solution, folder and project."""
        assert model.get_children() == [model.solution_node]
        assert [n.label for n in model.get_children(model.solution_node)] == ["src", "tests", "Lib"]
        assert [n.label for n in model.get_children(model.items[SRC_FOLDER_GUID])] == ["App"]
        assert model.get_children(model.items[LIB_GUID])[0].label == "Class1.cs"


class TestTreeHelpers:
    """Tests for node helpers."""

    def test_normalize_path(self):
        assert normalize_path("C:\\A\\B.txt") == normalize_path("c:/a/b.txt")
        assert normalize_path("/a/b/") == "/a/b"

    def test_add_child_detaches(self):
        """Test re-adding a child moves it to the new parent."""
        a = TreeNode("a", "a", NodeKind.SOLUTION_FOLDER)
        b = TreeNode("b", "b", NodeKind.SOLUTION_FOLDER)
        child = TreeNode("c", "c", NodeKind.SOLUTION_FOLDER)

        a.add_child(child)
        b.add_child(child)

        assert a.children == []
        assert b.children == [child]
        assert child.parent is b

    def test_to_dict_depth(self, model):
        """Test to_dict includes children only to the requested depth."""
        src = model.items[SRC_FOLDER_GUID].to_dict(depth=1)
        assert src["kind"] == "solutionFolder"
        assert src["children"][0]["label"] == "App"
        assert "children" not in model.items[SRC_FOLDER_GUID].to_dict()
