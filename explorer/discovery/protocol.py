"""Wire format of the find-tests request.

The discovery service answers a find-tests request for one project folder
with JSON of the form::

    {"suites": [
        {"label": "Suite A",
         "file": "file:///ws/app/tests/SuiteA.elm",
         "position": {"line": 3, "character": 0},
         "tests": [ ...nested suites/tests, same shape... ]}
    ]}

Positions are zero-based.  Entries without a label or file are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Position:
    """Zero-based source position."""

    line: int = 0
    character: int = 0


@dataclass(frozen=True)
class SuiteDescriptor:
    """A suite or test reported by the discovery service."""

    label: str
    file: str
    position: Position = Position()
    tests: list[SuiteDescriptor] = field(default_factory=list)


@dataclass(frozen=True)
class FindTestsParams:
    """Parameters of a find-tests request."""

    project_folder: str


def _parse_position(raw: Any) -> Position:
    if not isinstance(raw, dict):
        return Position()
    line = raw.get("line", 0)
    character = raw.get("character", 0)
    if not isinstance(line, int) or line < 0:
        line = 0
    if not isinstance(character, int) or character < 0:
        character = 0
    return Position(line=line, character=character)


def parse_suite(raw: Any) -> SuiteDescriptor | None:
    """Parse one suite entry recursively.

    Returns:
        The descriptor, or None if the entry is not a dict or lacks a
        string ``label`` or ``file``.
    """
    if not isinstance(raw, dict):
        return None
    label = raw.get("label")
    file = raw.get("file")
    if not isinstance(label, str) or not isinstance(file, str) or not file:
        return None

    children: list[SuiteDescriptor] = []
    raw_tests = raw.get("tests")
    if isinstance(raw_tests, list):
        for raw_child in raw_tests:
            child = parse_suite(raw_child)
            if child is not None:
                children.append(child)

    return SuiteDescriptor(
        label=label,
        file=file,
        position=_parse_position(raw.get("position")),
        tests=children,
    )


def parse_find_tests_response(data: Any) -> list[SuiteDescriptor]:
    """Parse a find-tests response into suite descriptors.

    Accepts the ``{"suites": [...]}`` object or a bare list of suites.
    A missing or null ``suites`` key means no suites.

    Raises:
        ValueError: If *data* is neither a dict nor a list, or ``suites``
            is present but not a list.
    """
    if isinstance(data, list):
        raw_suites: Any = data
    elif isinstance(data, dict):
        raw_suites = data.get("suites")
        if raw_suites is None:
            return []
    else:
        raise ValueError(
            f"Find-tests response must be an object, got {type(data).__name__}"
        )
    if not isinstance(raw_suites, list):
        raise ValueError("Find-tests response 'suites' must be a list")

    suites: list[SuiteDescriptor] = []
    for raw in raw_suites:
        suite = parse_suite(raw)
        if suite is not None:
            suites.append(suite)
    return suites
