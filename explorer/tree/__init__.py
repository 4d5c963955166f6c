"""Test tree model: workspace, project and suite nodes."""

from explorer.tree.model import (
    PENDING,
    PROJECT,
    RESOLVED,
    RESOLVING,
    SUITE,
    WORKSPACE,
    ExplorerTree,
    ProjectData,
    SuiteData,
    TreeNode,
    WorkspaceData,
    create_project_node,
    create_suite_node,
    create_workspace_node,
    files_under,
    project_of,
)

__all__ = [
    "PENDING",
    "PROJECT",
    "RESOLVED",
    "RESOLVING",
    "SUITE",
    "WORKSPACE",
    "ExplorerTree",
    "ProjectData",
    "SuiteData",
    "TreeNode",
    "WorkspaceData",
    "create_project_node",
    "create_suite_node",
    "create_workspace_node",
    "files_under",
    "project_of",
]
