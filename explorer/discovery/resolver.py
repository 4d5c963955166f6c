"""Lazy, cancellable resolution of the test tree.

Each node moves through pending -> resolving -> resolved.  A workspace is
resolved by scanning its folder for test projects; a project is resolved
by asking the discovery service for its suites, which are materialized
eagerly as a complete subtree.  Suites need no resolution of their own.

At most one resolution per node is in flight: a second call while the
first is running awaits the same task.  Cancelling the token of a running
resolution returns the node to pending and discards whatever the
resolution produces afterwards.  A failed discovery call also leaves the
node pending; no error state is recorded on the tree.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Awaitable, Callable, Iterable

from explorer.discovery.protocol import FindTestsParams, SuiteDescriptor
from explorer.discovery.service import DiscoveryService
from explorer.discovery.workspace import (
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_MANIFEST_NAME,
    DEFAULT_TESTS_DIR,
    find_test_projects,
)
from explorer.host.cancellation import CancellationToken
from explorer.tree.model import (
    PENDING,
    PROJECT,
    RESOLVED,
    RESOLVING,
    WORKSPACE,
    ProjectData,
    TreeNode,
    WorkspaceData,
    create_project_node,
    create_suite_node,
    project_node_id,
)
from explorer.tree.uris import path_to_uri, uri_to_path


def build_suite_nodes(
    suites: Iterable[SuiteDescriptor],
    project: TreeNode,
    parent_path: tuple[str, ...] = (),
) -> list[TreeNode]:
    """Materialize suite descriptors as suite nodes owned by *project*.

    Nested tests are attached recursively.  Siblings with the same label
    collapse into one node (the later descriptor wins).
    """
    nodes: dict[str, TreeNode] = {}
    for suite in suites:
        node = create_suite_node(
            suite.label,
            suite.file,
            suite.position.line,
            suite.position.character,
            project,
            parent_path,
        )
        for child in build_suite_nodes(
            suite.tests, project, parent_path + (suite.label,)
        ):
            node.add_child(child)
        nodes[node.id] = node
    return list(nodes.values())


class DiscoveryResolver:
    """Resolves workspace and project nodes on demand."""

    def __init__(
        self,
        service: DiscoveryService,
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        tests_dir: str = DEFAULT_TESTS_DIR,
        exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
    ) -> None:
        self.service = service
        self.manifest_name = manifest_name
        self.tests_dir = tests_dir
        self.exclude_dirs = tuple(exclude_dirs)
        # node id -> (task, token) of the resolution currently in flight
        self._in_flight: dict[
            str, tuple[asyncio.Future[None], CancellationToken]
        ] = {}

    def is_resolving(self, node: TreeNode) -> bool:
        """Whether a non-cancelled resolution of *node* is in flight."""
        entry = self._in_flight.get(node.id)
        return entry is not None and not entry[1].is_cancellation_requested

    async def resolve(
        self, node: TreeNode, token: CancellationToken | None = None
    ) -> None:
        """Resolve *node* according to its kind.  Suites are a no-op."""
        if node.kind == WORKSPACE:
            await self.resolve_workspace(node, token)
        elif node.kind == PROJECT:
            await self.resolve_project(node, token)

    async def expand(
        self, node: TreeNode, token: CancellationToken | None = None
    ) -> None:
        """Resolve *node* unless it is already resolved (first expansion)."""
        if node.status == RESOLVED:
            return
        await self.resolve(node, token)

    async def refresh(
        self, node: TreeNode, token: CancellationToken | None = None
    ) -> None:
        """Re-resolve *node* even if it is already resolved."""
        await self.resolve(node, token)

    async def resolve_workspace(
        self, workspace: TreeNode, token: CancellationToken | None = None
    ) -> None:
        if workspace.kind != WORKSPACE:
            raise ValueError(f"Not a workspace node: {workspace.id}")
        await self._join(workspace, token, self._resolve_workspace)

    async def resolve_project(
        self, project: TreeNode, token: CancellationToken | None = None
    ) -> None:
        if project.kind != PROJECT:
            raise ValueError(f"Not a project node: {project.id}")
        await self._join(project, token, self._resolve_project)

    async def resolve_tree(
        self, workspace: TreeNode, token: CancellationToken | None = None
    ) -> None:
        """Resolve a workspace, then all of its projects concurrently."""
        await self.resolve_workspace(workspace, token)
        await asyncio.gather(*(
            self.resolve_project(project, token)
            for project in list(workspace.children.values())
        ))

    async def _join(
        self,
        node: TreeNode,
        token: CancellationToken | None,
        work: Callable[[TreeNode, CancellationToken], Awaitable[None]],
    ) -> None:
        """Run *work* for *node*, or await the resolution already in flight.

        A cancelled in-flight resolution is not joined; a new one starts
        and the cancelled one discards its result when it finishes.
        """
        entry = self._in_flight.get(node.id)
        if entry is None or entry[1].is_cancellation_requested:
            if token is None:
                token = CancellationToken.none()
            task = asyncio.ensure_future(work(node, token))
            self._in_flight[node.id] = (task, token)
            task.add_done_callback(functools.partial(self._forget, node.id))
        else:
            task = entry[0]
        await asyncio.shield(task)

    def _forget(self, node_id: str, task: asyncio.Future[None]) -> None:
        entry = self._in_flight.get(node_id)
        if entry is not None and entry[0] is task:
            del self._in_flight[node_id]

    @staticmethod
    def _back_to_pending(node: TreeNode) -> None:
        if node.status == RESOLVING:
            node.status = PENDING

    async def _resolve_workspace(
        self, workspace: TreeNode, token: CancellationToken
    ) -> None:
        assert isinstance(workspace.data, WorkspaceData)
        if token.is_cancellation_requested:
            return

        workspace.status = RESOLVING
        dispose = token.on_cancellation_requested(
            lambda: self._back_to_pending(workspace)
        )
        try:
            folder = uri_to_path(workspace.data.folder_uri)
            loop = asyncio.get_running_loop()
            project_dirs = await loop.run_in_executor(
                None,
                functools.partial(
                    find_test_projects,
                    folder,
                    manifest_name=self.manifest_name,
                    tests_dir=self.tests_dir,
                    exclude_dirs=self.exclude_dirs,
                ),
            )
        except ValueError:
            if not token.is_cancellation_requested:
                workspace.status = PENDING
            return
        except asyncio.CancelledError:
            self._back_to_pending(workspace)
            raise
        finally:
            dispose()

        if token.is_cancellation_requested:
            return

        # Keep existing project nodes so a folder is never re-created
        projects: list[TreeNode] = []
        for project_dir in project_dirs:
            folder_uri = path_to_uri(project_dir)
            existing = workspace.children.get(project_node_id(folder_uri))
            if existing is None:
                existing = create_project_node(folder_uri, workspace)
            projects.append(existing)
        workspace.replace_children(projects)
        workspace.status = RESOLVED

    async def _resolve_project(
        self, project: TreeNode, token: CancellationToken
    ) -> None:
        assert isinstance(project.data, ProjectData)
        if token.is_cancellation_requested:
            return

        project.status = RESOLVING
        dispose = token.on_cancellation_requested(
            lambda: self._back_to_pending(project)
        )
        try:
            suites = await self.service.find_tests(
                FindTestsParams(project_folder=project.data.folder_uri)
            )
        except asyncio.CancelledError:
            self._back_to_pending(project)
            raise
        except Exception:
            # The service reports its own diagnostics
            if not token.is_cancellation_requested:
                project.status = PENDING
            return
        finally:
            dispose()

        if token.is_cancellation_requested:
            return

        project.replace_children(build_suite_nodes(suites, project))
        project.status = RESOLVED
