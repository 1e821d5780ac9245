"""Solution model: manifest grammar, directory scan and the cached tree."""

from .grammar import (
    FOLDER_TYPE_GUID,
    DeclarationKind,
    NestingPair,
    PackageReference,
    ParsedSolution,
    ProjectManifest,
    SolutionDeclaration,
    classify_declaration,
    parse_project_manifest,
    parse_solution,
)
from .model import NodeKind, SolutionModel, TreeNode, normalize_path, sort_nodes
from .scanner import EXCLUDED_DIRECTORIES, scan_directory

__all__ = [
    "FOLDER_TYPE_GUID",
    "EXCLUDED_DIRECTORIES",
    "DeclarationKind",
    "NestingPair",
    "NodeKind",
    "PackageReference",
    "ParsedSolution",
    "ProjectManifest",
    "SolutionDeclaration",
    "SolutionModel",
    "TreeNode",
    "classify_declaration",
    "normalize_path",
    "parse_project_manifest",
    "parse_solution",
    "scan_directory",
    "sort_nodes",
]
