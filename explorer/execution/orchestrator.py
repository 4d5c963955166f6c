"""Run orchestration: from a run request to per-project test runs.

A run request names selected tree nodes and excluded tree nodes.  The
orchestrator:

1. drops selected nodes that are themselves excluded;
2. groups the rest by owning project (a workspace selection stands for
   all of its projects);
3. collects, per project, the distinct source files of the selected suites
   and their non-excluded descendants.  Selecting a whole project runs all
   of its tests, unless something inside it is excluded, in which case the
   files of the remaining suites are listed explicitly;
4. marks the affected nodes running before dispatching;
5. dispatches one adapter run per project, all projects concurrently;
6. marks the project passed or failed (with the error message attached);
7. ends the session once every project is done.

Results are attributed to the project node only; the adapter does not
report per-suite outcomes.  Every project task writes only to nodes of its
own project subtree.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterator

from explorer.execution.adapter import ExecutionAdapter, RunOutcome
from explorer.reporting.session import FAILED, PASSED, RUNNING, RunMessage, RunSession
from explorer.tree.model import (
    WORKSPACE,
    ProjectData,
    SuiteData,
    TreeNode,
    project_of,
)
from explorer.tree.uris import is_file_uri


@dataclass
class RunRequest:
    """Nodes to run and nodes to leave out."""

    include: list[TreeNode]
    exclude: list[TreeNode] = field(default_factory=list)


@dataclass
class ProjectBatch:
    """One dispatch unit: a project and the files to run in it.

    An empty ``files`` list means "run every test of the project".
    ``affected`` lists the nodes marked running before dispatch.
    """

    project: TreeNode
    files: list[str]
    affected: list[TreeNode]

    @property
    def run_all(self) -> bool:
        return not self.files


def _walk_included(node: TreeNode, excluded: set[str]) -> Iterator[TreeNode]:
    """Pre-order walk of *node*'s subtree, skipping excluded subtrees."""
    if node.id in excluded:
        return
    yield node
    for child in list(node.children.values()):
        yield from _walk_included(child, excluded)


def _suite_file(node: TreeNode) -> str | None:
    """Dispatchable file of a suite node, or None if unusable."""
    if not isinstance(node.data, SuiteData):
        return None
    if not is_file_uri(node.data.file_uri):
        return None
    return node.data.file_uri


def plan_run(request: RunRequest) -> list[ProjectBatch]:
    """Compute the per-project batches of a run request.

    Projects appear in the order they are first reached from the
    selection.  Projects with nothing to run are left out.
    """
    excluded = {node.id for node in request.exclude}

    # project id -> (project, selected nodes of that project)
    selections: dict[str, tuple[TreeNode, list[TreeNode]]] = {}
    for node in request.include:
        if node.id in excluded:
            continue
        if node.kind == WORKSPACE:
            targets = [
                child for child in node.children.values()
                if child.id not in excluded
            ]
        else:
            targets = [node]
        for target in targets:
            project = project_of(target)
            if project is None:
                continue
            entry = selections.setdefault(project.id, (project, []))
            entry[1].append(target)

    batches: list[ProjectBatch] = []
    for project, selected in selections.values():
        whole_project = any(node.id == project.id for node in selected)
        roots = [project] if whole_project else selected

        included: dict[str, TreeNode] = {}
        for root in roots:
            for node in _walk_included(root, excluded):
                included.setdefault(node.id, node)

        files: dict[str, None] = {}
        for node in included.values():
            file_uri = _suite_file(node)
            if file_uri is not None:
                files.setdefault(file_uri, None)

        run_all = whole_project and not any(
            node.id in excluded for node in project.walk()
        )
        if run_all:
            batches.append(ProjectBatch(
                project=project,
                files=[],
                affected=list(included.values()),
            ))
            continue

        if not files:
            continue

        affected = [
            node for node in included.values()
            if node is project or _suite_file(node) in files
        ]
        batches.append(ProjectBatch(
            project=project,
            files=list(files),
            affected=affected,
        ))

    return batches


class RunOrchestrator:
    """Runs test requests through an execution adapter."""

    def __init__(self, adapter: ExecutionAdapter) -> None:
        self.adapter = adapter

    async def run_tests(
        self,
        request: RunRequest,
        session: RunSession | None = None,
    ) -> RunSession:
        """Run *request*, reporting every outcome to *session*.

        The session is always ended before this returns.

        Returns:
            The session that received the outcomes.
        """
        if session is None:
            session = RunSession()
        try:
            batches = plan_run(request)
            await asyncio.gather(*(
                self._run_batch(batch, session) for batch in batches
            ))
        finally:
            session.end()
        return session

    async def _run_batch(self, batch: ProjectBatch, session: RunSession) -> None:
        project = batch.project
        assert isinstance(project.data, ProjectData)

        for node in batch.affected:
            session.set_state(node, RUNNING)

        try:
            outcome = await self.adapter.run(
                project.data.workspace_uri,
                project.data.folder_uri,
                list(batch.files),
            )
        except Exception as e:
            outcome = RunOutcome.failure(f"{type(e).__name__}: {e}")

        if outcome.output:
            session.append_output(outcome.output)

        if outcome.ok:
            session.set_state(project, PASSED)
            session.append_output(f"Completed {project.id}\r\n")
        else:
            session.set_state(project, FAILED)
            session.append_message(
                project, RunMessage(message=outcome.error, uri=project.uri),
            )
            session.append_output(f"Failed {project.id}\r\n")
