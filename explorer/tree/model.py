"""Test tree data structures.

Provides TreeNode (a plain tree node carrying a tagged payload) and
ExplorerTree (the set of workspace roots with lookup by identifier).

The payload of a node is exactly one of:

- WorkspaceData: a workspace folder, children are projects
- ProjectData: a project folder with a manifest and a tests directory,
  children are top-level suites
- SuiteData: a suite or a single test, children are nested suites/tests

Identifiers are derived from the payload only, so re-resolving the same
folder or suite always yields the same id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

from explorer.tree.uris import path_to_uri, uri_basename

# Resolution statuses
PENDING = "pending"
RESOLVING = "resolving"
RESOLVED = "resolved"

VALID_RESOLUTION_STATUSES = frozenset({PENDING, RESOLVING, RESOLVED})

# Allowed (old, new) status transitions.  Resolved -> Resolving is a refresh.
_TRANSITIONS = frozenset({
    (PENDING, RESOLVING),
    (RESOLVING, RESOLVED),
    (RESOLVING, PENDING),
    (RESOLVED, RESOLVING),
})

WORKSPACE = "workspace"
PROJECT = "project"
SUITE = "suite"


@dataclass(frozen=True)
class WorkspaceData:
    """Payload of a workspace root."""

    folder_uri: str
    name: str


@dataclass(frozen=True)
class ProjectData:
    """Payload of a project root."""

    folder_uri: str
    workspace_id: str
    workspace_uri: str = ""


@dataclass(frozen=True)
class SuiteData:
    """Payload of a suite or test node.

    ``project_id`` is the id of the owning project and is set on every
    suite regardless of depth.
    """

    label: str
    file_uri: str
    line: int
    column: int
    project_id: str
    label_path: tuple[str, ...] = ()


NodeData = Union[WorkspaceData, ProjectData, SuiteData]


def workspace_node_id(folder_uri: str) -> str:
    return f"workspace {folder_uri}"


def project_node_id(folder_uri: str) -> str:
    return f"project {folder_uri}"


def _escape_label(label: str) -> str:
    return label.replace("%", "%25").replace("/", "%2F")


def suite_node_id(project_uri: str, label_path: tuple[str, ...]) -> str:
    """Id of a suite; "/" and "%" inside labels are percent-escaped."""
    return f"suite/{project_uri}/" + "/".join(
        _escape_label(label) for label in label_path
    )


class TreeNode:
    """A node in the test tree.

    Children are kept in insertion order, keyed by id.  Adding a child
    whose id is already present replaces the old child in place.
    """

    def __init__(
        self,
        node_id: str,
        label: str,
        data: NodeData,
        uri: str | None = None,
        status: str = PENDING,
        range: tuple[int, int] | None = None,
    ) -> None:
        if status not in VALID_RESOLUTION_STATUSES:
            raise ValueError(f"Unknown resolution status: {status}")
        self.id = node_id
        self.label = label
        self.data = data
        self.uri = uri
        self.range = range
        self.parent: TreeNode | None = None
        # Owning project of a suite; outlives detachment from the tree
        self.owner: TreeNode | None = None
        self.children: dict[str, TreeNode] = {}
        self._status = status

    def __repr__(self) -> str:
        return f"TreeNode({self.id!r}, status={self._status!r})"

    @property
    def kind(self) -> str:
        if isinstance(self.data, WorkspaceData):
            return WORKSPACE
        if isinstance(self.data, ProjectData):
            return PROJECT
        return SUITE

    @property
    def status(self) -> str:
        return self._status

    @status.setter
    def status(self, new_status: str) -> None:
        """Set the resolution status.

        Raises:
            ValueError: If the status is unknown or the transition is not
                one of pending->resolving, resolving->resolved,
                resolving->pending, resolved->resolving.
        """
        if new_status not in VALID_RESOLUTION_STATUSES:
            raise ValueError(f"Unknown resolution status: {new_status}")
        if new_status == self._status:
            return
        if (self._status, new_status) not in _TRANSITIONS:
            raise ValueError(
                f"Invalid status transition for {self.id}: "
                f"{self._status} -> {new_status}"
            )
        self._status = new_status

    def add_child(self, child: TreeNode) -> TreeNode:
        """Attach *child*, replacing any sibling with the same id."""
        old = self.children.get(child.id)
        if old is not None and old is not child:
            old.parent = None
        child.parent = self
        self.children[child.id] = child
        return child

    def remove_child(self, child_id: str) -> TreeNode | None:
        """Detach and return the child with *child_id*, if present."""
        child = self.children.pop(child_id, None)
        if child is not None:
            child.parent = None
        return child

    def replace_children(self, children: list[TreeNode]) -> None:
        """Replace all children with *children* (no merge)."""
        for old in self.children.values():
            old.parent = None
        self.children = {}
        for child in children:
            self.add_child(child)

    def walk(self) -> Iterator[TreeNode]:
        """Yield this node and all descendants in pre-order."""
        yield self
        for child in list(self.children.values()):
            yield from child.walk()

    def find(self, node_id: str) -> TreeNode | None:
        """Find a node by id within this subtree."""
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def ancestors(self) -> Iterator[TreeNode]:
        """Yield the parent chain, nearest first."""
        current = self.parent
        while current is not None:
            yield current
            current = current.parent


def project_of(node: TreeNode) -> TreeNode | None:
    """Return the owning project of *node*.

    A project is its own owner.  A suite answers with the project it was
    created for, even after a re-resolution detached it; suites built
    without one fall back to the parent chain.  Workspaces have no owner.
    """
    if node.kind == PROJECT:
        return node
    if node.kind != SUITE:
        return None
    if node.owner is not None:
        return node.owner
    for ancestor in node.ancestors():
        if ancestor.kind == PROJECT:
            return ancestor
    return None


def files_under(node: TreeNode) -> list[str]:
    """Collect distinct suite file URIs in *node*'s subtree, in tree order."""
    files: dict[str, None] = {}
    for descendant in node.walk():
        if isinstance(descendant.data, SuiteData):
            files.setdefault(descendant.data.file_uri, None)
    return list(files)


def create_workspace_node(folder: str, name: str | None = None) -> TreeNode:
    """Create a workspace root for a folder path or ``file://`` URI."""
    folder_uri = folder if folder.startswith("file:") else path_to_uri(folder)
    if name is None:
        name = uri_basename(folder_uri) or folder_uri
    return TreeNode(
        workspace_node_id(folder_uri),
        f"Tests ({name})",
        WorkspaceData(folder_uri=folder_uri, name=name),
        uri=folder_uri,
    )


def create_project_node(folder_uri: str, workspace: TreeNode) -> TreeNode:
    """Create a project root owned by *workspace* (not attached)."""
    if workspace.kind != WORKSPACE:
        raise ValueError(f"Projects belong to a workspace, got {workspace.kind}")
    return TreeNode(
        project_node_id(folder_uri),
        uri_basename(folder_uri) or folder_uri,
        ProjectData(
            folder_uri=folder_uri,
            workspace_id=workspace.id,
            workspace_uri=workspace.data.folder_uri,
        ),
        uri=folder_uri,
    )


def create_suite_node(
    label: str,
    file_uri: str,
    line: int,
    column: int,
    project: TreeNode,
    parent_path: tuple[str, ...] = (),
) -> TreeNode:
    """Create a resolved suite/test node owned by *project* (not attached).

    Args:
        label: Suite or test label.
        file_uri: Source file of the suite.
        line: Zero-based line of the declaration.
        column: Zero-based column of the declaration.
        project: The owning project root.
        parent_path: Labels of the enclosing suites, outermost first.
    """
    if not isinstance(project.data, ProjectData):
        raise ValueError(f"Suites belong to a project, got {project.kind}")
    label_path = parent_path + (label,)
    node = TreeNode(
        suite_node_id(project.data.folder_uri, label_path),
        label,
        SuiteData(
            label=label,
            file_uri=file_uri,
            line=line,
            column=column,
            project_id=project.id,
            label_path=label_path,
        ),
        uri=file_uri,
        status=RESOLVED,
        range=(line, column),
    )
    node.owner = project
    return node


class ExplorerTree:
    """The workspace roots known to the host, keyed by id."""

    def __init__(self) -> None:
        self.roots: dict[str, TreeNode] = {}

    def add_workspace(self, folder: str, name: str | None = None) -> TreeNode:
        """Add a workspace root, returning the existing one if present."""
        node = create_workspace_node(folder, name)
        existing = self.roots.get(node.id)
        if existing is not None:
            return existing
        self.roots[node.id] = node
        return node

    def remove_workspace(self, folder: str) -> TreeNode | None:
        """Remove the workspace root for *folder*, if present."""
        node_id = create_workspace_node(folder).id
        return self.roots.pop(node_id, None)

    def walk(self) -> Iterator[TreeNode]:
        for root in list(self.roots.values()):
            yield from root.walk()

    def find(self, node_id: str) -> TreeNode | None:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None
