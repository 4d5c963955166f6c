"""Run sessions: the sink for node states and messages of one test run.

A RunSession collects state transitions (queued, running, passed, failed,
errored, skipped), messages attached to nodes, and free-form output.
Setting a state twice for the same node is allowed; the last write wins,
while every transition stays in the ordered transition log.  ``end()``
finalizes the session; later writes are rejected.

The session can be written out as a JSON or YAML report.
"""

from __future__ import annotations

import datetime
import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from explorer.tree.model import TreeNode

QUEUED = "queued"
RUNNING = "running"
PASSED = "passed"
FAILED = "failed"
ERRORED = "errored"
SKIPPED = "skipped"

VALID_STATES = frozenset({QUEUED, RUNNING, PASSED, FAILED, ERRORED, SKIPPED})


@dataclass
class RunMessage:
    """A diagnostic attached to a node, with an optional source location."""

    message: str
    uri: str | None = None
    line: int | None = None


@dataclass
class StateChange:
    """One entry of the transition log."""

    node_id: str
    state: str
    elapsed: float


class RunSession:
    """Collects the outcome of one test run."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.transitions: list[StateChange] = []
        self.states: dict[str, str] = {}
        self.labels: dict[str, str] = {}
        self.messages: dict[str, list[RunMessage]] = {}
        self.output: list[str] = []
        self.started_at = datetime.datetime.now(datetime.timezone.utc)
        self.ended_at: datetime.datetime | None = None
        self._start = time.monotonic()

    @property
    def ended(self) -> bool:
        return self.ended_at is not None

    def _check_open(self) -> None:
        if self.ended:
            raise RuntimeError(f"Run session {self.name!r} has already ended")

    def set_state(self, node: TreeNode, state: str) -> None:
        """Record *state* for *node*.

        Raises:
            ValueError: If the state is unknown.
            RuntimeError: If the session has ended.
        """
        if state not in VALID_STATES:
            raise ValueError(f"Unknown run state: {state}")
        self._check_open()
        self.states[node.id] = state
        self.labels[node.id] = node.label
        self.transitions.append(
            StateChange(node.id, state, time.monotonic() - self._start)
        )

    def append_message(self, node: TreeNode, message: RunMessage | str) -> None:
        """Attach a message to *node*."""
        self._check_open()
        if isinstance(message, str):
            message = RunMessage(message=message)
        self.labels.setdefault(node.id, node.label)
        self.messages.setdefault(node.id, []).append(message)

    def append_output(self, text: str) -> None:
        """Append raw output text to the run."""
        self._check_open()
        self.output.append(text)

    def end(self) -> None:
        """Finalize the session.  Calling it again has no effect."""
        if self.ended_at is None:
            self.ended_at = datetime.datetime.now(datetime.timezone.utc)

    def state_of(self, node: TreeNode | str) -> str | None:
        node_id = node if isinstance(node, str) else node.id
        return self.states.get(node_id)

    def history_of(self, node: TreeNode | str) -> list[str]:
        """All states recorded for a node, in order."""
        node_id = node if isinstance(node, str) else node.id
        return [c.state for c in self.transitions if c.node_id == node_id]

    def summary(self) -> dict[str, int]:
        """Count nodes per final state."""
        counts = {state: 0 for state in sorted(VALID_STATES)}
        for state in self.states.values():
            counts[state] += 1
        counts["total"] = len(self.states)
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Build the report dict."""
        nodes = []
        for node_id in self.labels:
            nodes.append({
                "id": node_id,
                "label": self.labels[node_id],
                "state": self.states.get(node_id),
                "messages": [
                    asdict(m) for m in self.messages.get(node_id, [])
                ],
            })
        return {
            "run": {
                "name": self.name,
                "started_at": self.started_at.isoformat(),
                "ended_at": (
                    self.ended_at.isoformat() if self.ended_at else None
                ),
                "summary": self.summary(),
                "nodes": nodes,
                "output": "".join(self.output),
            },
        }

    def write_report(self, path: Path) -> None:
        """Write the report as a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
            f.write("\n")

    def write_yaml(self, path: Path) -> None:
        """Write the report as a YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
