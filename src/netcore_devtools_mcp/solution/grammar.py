"""Solution (.sln) and project (.csproj) manifest grammar.

Solution manifests are line oriented:

    Project("{TYPE-GUID}") = "Name", "Path\\To\\Name.csproj", "{ITEM-GUID}"
    EndProject
    Global
        GlobalSection(NestedProjects) = preSolution
            {CHILD-GUID} = {PARENT-GUID}
        EndGlobalSection
    EndGlobal

Parsing is lenient: declarations that do not match or are not recognized
are skipped, never reported as errors.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

logger = logging.getLogger(__name__)

FOLDER_TYPE_GUID: Final[str] = "2150E333-8FDC-42A3-9474-1A3956D46DE8"
CSHARP_PROJECT_TYPE_GUID: Final[str] = "FAE04EC0-301F-11D3-BF4B-00C04F79EFBC"
FSHARP_PROJECT_TYPE_GUID: Final[str] = "F2A71F9B-5D33-465A-A702-920D77279786"
VB_PROJECT_TYPE_GUID: Final[str] = "F184B08F-C81C-45F6-A57F-5ABD9991F28F"

PROJECT_EXTENSIONS: Final[tuple[str, ...]] = (".csproj", ".fsproj", ".vbproj")

PROJECT_TYPE_GUIDS: Final[dict[str, str]] = {
    ".csproj": CSHARP_PROJECT_TYPE_GUID,
    ".fsproj": FSHARP_PROJECT_TYPE_GUID,
    ".vbproj": VB_PROJECT_TYPE_GUID,
}

DEFAULT_TARGET_FRAMEWORK: Final[str] = "net8.0"

PROJECT_LINE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r'^Project\("\{(?P<type_guid>[^}]+)\}"\)\s*=\s*'
    r'"(?P<name>[^"]*)"\s*,\s*"(?P<path>[^"]*)"\s*,\s*"\{(?P<guid>[^}]+)\}"'
)

NESTING_LINE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\{(?P<child>[^}]+)\}\s*=\s*\{(?P<parent>[^}]+)\}"
)

NESTED_SECTION_START: Final[re.Pattern[str]] = re.compile(
    r"^GlobalSection\(NestedProjects\)\s*=\s*preSolution"
)

TARGET_FRAMEWORK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"<TargetFramework>\s*(?P<value>[^<]+?)\s*</TargetFramework>"
)

PACKAGE_REFERENCE_TAG: Final[re.Pattern[str]] = re.compile(
    r"<PackageReference\b(?P<attributes>[^>]*)>"
)

ATTRIBUTE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r'(?P<key>[A-Za-z_][\w.-]*)\s*=\s*"(?P<value>[^"]*)"'
)


class DeclarationKind(str, Enum):
    """How a solution declaration is materialized."""

    FOLDER = "folder"
    PROJECT = "project"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SolutionDeclaration:
    """A Project(...) record from a solution manifest."""

    type_guid: str
    name: str
    path: str
    guid: str

    @property
    def is_folder(self) -> bool:
        return self.type_guid == FOLDER_TYPE_GUID


@dataclass(frozen=True)
class NestingPair:
    """A NestedProjects mapping: child is shown under parent."""

    child: str
    parent: str


@dataclass
class ParsedSolution:
    """Structured contents of a solution manifest."""

    declarations: list[SolutionDeclaration] = field(default_factory=list)
    nestings: list[NestingPair] = field(default_factory=list)


@dataclass(frozen=True)
class PackageReference:
    """A declared NuGet dependency."""

    name: str
    version: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} ({self.version})" if self.version else self.name


@dataclass
class ProjectManifest:
    """The parts of a project manifest the solution tree needs."""

    target_framework: str = DEFAULT_TARGET_FRAMEWORK
    packages: list[PackageReference] = field(default_factory=list)


def is_project_manifest(path: str) -> bool:
    """Whether the path names a project manifest (.csproj and siblings)."""
    return path.lower().endswith(PROJECT_EXTENSIONS)


def project_type_guid(path: str) -> str:
    """Solution type GUID for a project manifest, by extension (C# when unknown)."""
    extension = os.path.splitext(path)[1].lower()
    return PROJECT_TYPE_GUIDS.get(extension, CSHARP_PROJECT_TYPE_GUID)


def parse_solution(text: str) -> ParsedSolution:
    """Scan solution manifest text for declarations and nesting pairs.

    Args:
        text: Raw solution manifest contents

    Returns:
        Declarations in document order and nesting pairs in section order
    """
    result = ParsedSolution()
    in_nested_section = False

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if in_nested_section:
            if line.startswith("EndGlobalSection"):
                in_nested_section = False
                continue
            match = NESTING_LINE_PATTERN.match(line)
            if match:
                result.nestings.append(
                    NestingPair(
                        child=match.group("child").upper(),
                        parent=match.group("parent").upper(),
                    )
                )
            else:
                logger.debug(f"Skipping unrecognized nesting line: {line}")
            continue

        if line.startswith("Project("):
            match = PROJECT_LINE_PATTERN.match(line)
            if match is None:
                logger.debug(f"Skipping malformed declaration: {line}")
                continue
            result.declarations.append(
                SolutionDeclaration(
                    type_guid=match.group("type_guid").upper(),
                    name=match.group("name"),
                    path=match.group("path"),
                    guid=match.group("guid").upper(),
                )
            )
        elif NESTED_SECTION_START.match(line):
            in_nested_section = True

    return result


def resolve_declaration_path(declaration: SolutionDeclaration, solution_dir: str) -> str:
    """Absolute path of a declaration, relative paths resolved against the solution."""
    local = declaration.path.replace("\\", os.sep).replace("/", os.sep)
    return os.path.normpath(os.path.join(solution_dir, local))


def classify_declaration(declaration: SolutionDeclaration, solution_dir: str) -> DeclarationKind:
    """Decide whether a declaration becomes a folder, a project, or nothing.

    Projects must name a project manifest that exists on disk. Everything
    else (web sites, missing projects, unknown types) is skipped.
    """
    if declaration.is_folder:
        return DeclarationKind.FOLDER
    if is_project_manifest(declaration.path):
        if os.path.exists(resolve_declaration_path(declaration, solution_dir)):
            return DeclarationKind.PROJECT
        logger.debug(f"Skipping project with missing manifest: {declaration.path}")
        return DeclarationKind.SKIPPED
    logger.debug(f"Skipping unsupported declaration: {declaration.name} ({declaration.path})")
    return DeclarationKind.SKIPPED


def parse_project_manifest(text: str) -> ProjectManifest:
    """Extract target framework and package references from a project manifest."""
    manifest = ProjectManifest()

    match = TARGET_FRAMEWORK_PATTERN.search(text)
    if match:
        manifest.target_framework = match.group("value")

    for tag in PACKAGE_REFERENCE_TAG.finditer(text):
        attributes = {
            attr.group("key"): attr.group("value")
            for attr in ATTRIBUTE_PATTERN.finditer(tag.group("attributes"))
        }
        name = attributes.get("Include")
        if not name:
            continue
        manifest.packages.append(PackageReference(name=name, version=attributes.get("Version", "")))

    return manifest


# Manifest writers. Content is only ever inserted, never rewritten.


def new_guid() -> str:
    """Fresh upper-case GUID in solution manifest form."""
    return str(uuid.uuid4()).upper()


GLOBAL_LINE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^Global\r?$", re.MULTILINE)
END_GLOBAL_LINE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^EndGlobal\r?$", re.MULTILINE)


def line_ending(text: str) -> str:
    """The manifest's own line terminator (CRLF for Visual Studio files)."""
    return "\r\n" if "\r\n" in text else "\n"


def format_declaration(declaration: SolutionDeclaration, newline: str = "\n") -> str:
    return (
        f'Project("{{{declaration.type_guid}}}") = "{declaration.name}", '
        f'"{declaration.path}", "{{{declaration.guid}}}"{newline}EndProject{newline}'
    )


def _terminated(text: str, newline: str) -> str:
    if text and not text.endswith("\n"):
        return text + newline
    return text


def add_declaration(text: str, declaration: SolutionDeclaration) -> str:
    """Insert a declaration before the Global block, or append it.

    Existing text is kept byte for byte; new lines use the text's line ending.
    """
    newline = line_ending(text)
    entry = format_declaration(declaration, newline)
    match = GLOBAL_LINE_PATTERN.search(text)
    if match is None:
        return _terminated(text, newline) + entry
    return text[: match.start()] + entry + text[match.start():]


def add_nesting(text: str, child_guid: str, parent_guid: str) -> str:
    """Record child under parent in the NestedProjects section, creating it if needed."""
    newline = line_ending(text)
    mapping = f"\t\t{{{child_guid}}} = {{{parent_guid}}}{newline}"

    section = re.search(r"GlobalSection\(NestedProjects\)\s*=\s*preSolution", text)
    if section:
        end = text.find("EndGlobalSection", section.end())
        if end != -1:
            # keep the closing line's indentation intact
            line_start = text.rfind("\n", 0, end) + 1
            return text[:line_start] + mapping + text[line_start:]

    block = f"\tGlobalSection(NestedProjects) = preSolution{newline}{mapping}\tEndGlobalSection{newline}"
    match = END_GLOBAL_LINE_PATTERN.search(text)
    if match is None:
        return _terminated(text, newline) + block
    return text[: match.start()] + block + text[match.start():]
