"""Tests for the find-tests wire format parser."""

from __future__ import annotations

import pytest

from explorer.discovery.protocol import (
    Position,
    SuiteDescriptor,
    parse_find_tests_response,
    parse_suite,
)

F1 = "file:///ws/app/tests/SuiteA.elm"

SAMPLE_RESPONSE = {
    "suites": [
        {
            "label": "Suite A",
            "file": F1,
            "position": {"line": 3, "character": 0},
            "tests": [
                {
                    "label": "t1",
                    "file": F1,
                    "position": {"line": 5, "character": 8},
                },
                {
                    "label": "t2",
                    "file": F1,
                    "position": {"line": 9, "character": 8},
                    "tests": [],
                },
            ],
        },
    ],
}


class TestParseFindTestsResponse:
    """Tests for parse_find_tests_response()."""

    def test_nested_suites(self):
        suites = parse_find_tests_response(SAMPLE_RESPONSE)
        assert len(suites) == 1
        suite = suites[0]
        assert suite.label == "Suite A"
        assert suite.file == F1
        assert suite.position == Position(line=3, character=0)
        assert [t.label for t in suite.tests] == ["t1", "t2"]
        assert suite.tests[0].position == Position(line=5, character=8)
        assert suite.tests[0].tests == []

    def test_bare_list(self):
        suites = parse_find_tests_response(SAMPLE_RESPONSE["suites"])
        assert [s.label for s in suites] == ["Suite A"]

    def test_missing_suites(self):
        """A response without suites means an empty project."""
        assert parse_find_tests_response({}) == []
        assert parse_find_tests_response({"suites": None}) == []

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="must be an object"):
            parse_find_tests_response("oops")

    def test_suites_not_a_list(self):
        with pytest.raises(ValueError, match="must be a list"):
            parse_find_tests_response({"suites": {"label": "x"}})

    def test_malformed_entries_skipped(self):
        """Entries lacking a label or file are dropped, siblings kept."""
        suites = parse_find_tests_response({
            "suites": [
                {"file": F1},
                {"label": "no file"},
                "junk",
                {"label": "ok", "file": F1},
            ],
        })
        assert [s.label for s in suites] == ["ok"]


class TestParseSuite:
    """Tests for parse_suite() edge cases."""

    def test_missing_position_defaults_to_origin(self):
        suite = parse_suite({"label": "a", "file": F1})
        assert suite == SuiteDescriptor(label="a", file=F1)
        assert suite.position == Position(0, 0)

    def test_negative_position_clamped(self):
        suite = parse_suite({
            "label": "a",
            "file": F1,
            "position": {"line": -1, "character": "x"},
        })
        assert suite.position == Position(0, 0)

    def test_malformed_child_dropped(self):
        suite = parse_suite({
            "label": "a",
            "file": F1,
            "tests": [{"label": "b"}, {"label": "c", "file": F1}],
        })
        assert [t.label for t in suite.tests] == ["c"]

    def test_non_dict(self):
        assert parse_suite(["a"]) is None

