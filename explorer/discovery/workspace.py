"""Find test projects inside a workspace folder.

A test project is a directory that contains a project manifest
(``elm.json`` by default) and a tests directory next to it.  Dependency
and build directories are never descended into.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

DEFAULT_MANIFEST_NAME = "elm.json"
DEFAULT_TESTS_DIR = "tests"
DEFAULT_EXCLUDE_DIRS = ("node_modules", "elm-stuff")


def find_manifests(
    workspace_dir: str | Path,
    manifest_name: str = DEFAULT_MANIFEST_NAME,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
) -> list[Path]:
    """Return every manifest file under *workspace_dir*, sorted.

    Directories whose name is in *exclude_dirs* are pruned from the walk.
    An unreadable or missing workspace yields an empty list.
    """
    excluded = set(exclude_dirs)
    manifests: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(workspace_dir):
        # Prune in place so os.walk skips them
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        if manifest_name in filenames:
            manifests.append(Path(dirpath) / manifest_name)
    return sorted(manifests)


def find_test_projects(
    workspace_dir: str | Path,
    manifest_name: str = DEFAULT_MANIFEST_NAME,
    tests_dir: str = DEFAULT_TESTS_DIR,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
) -> list[Path]:
    """Return project folders that have both a manifest and a tests dir.

    Args:
        workspace_dir: Root of the workspace folder to scan.
        manifest_name: File name marking a project directory.
        tests_dir: Name of the tests directory inside a project.
        exclude_dirs: Directory names that are not scanned.

    Returns:
        Sorted list of project directories.
    """
    projects: list[Path] = []
    for manifest in find_manifests(workspace_dir, manifest_name, exclude_dirs):
        project_dir = manifest.parent
        if (project_dir / tests_dir).is_dir():
            projects.append(project_dir)
    return projects
