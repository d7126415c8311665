"""Utility helpers for the lint engine."""

from .fileio import parse_yaml_text, read_yaml_file, read_yaml_mapping
from .paths import ROOT_MARKER, find_ancestor_files, resolve_project_root

__all__ = [
    "parse_yaml_text",
    "read_yaml_file",
    "read_yaml_mapping",
    "ROOT_MARKER",
    "find_ancestor_files",
    "resolve_project_root",
]
