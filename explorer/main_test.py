"""Tests for the explorer main entry point."""

from __future__ import annotations

import json
import stat
import tempfile
from pathlib import Path

import pytest
import yaml

from explorer.main import (
    display_path,
    find_node,
    main,
    parse_args,
)
from explorer.tree.model import (
    ExplorerTree,
    create_project_node,
    create_suite_node,
)


def _make_script(tmpdir: Path, name: str, content: str) -> str:
    """Create an executable script and return its path."""
    script_path = tmpdir / name
    script_path.write_text(content)
    script_path.chmod(script_path.stat().st_mode | stat.S_IEXEC)
    return str(script_path)


# Prints one suite with two tests per project, all in tests/SuiteA.elm.
DISCOVERY_SCRIPT = """#!/bin/bash
FILE="file://$1/tests/SuiteA.elm"
cat <<EOF
{"suites": [
  {"label": "Suite A", "file": "$FILE", "position": {"line": 2, "character": 0},
   "tests": [
     {"label": "t1", "file": "$FILE", "position": {"line": 4, "character": 4}},
     {"label": "t2", "file": "$FILE", "position": {"line": 7, "character": 4}}
   ]}
]}
EOF
"""

# Echoes its arguments; fails in a project folder named "broken".
TEST_SCRIPT = """#!/bin/bash
echo "ran in $(basename "$PWD"): $@"
if [ "$(basename "$PWD")" = "broken" ]; then
    echo "Compilation failed" >&2
    exit 1
fi
exit 0
"""


def _make_workspace(tmpdir: Path, projects=("app",)) -> Path:
    workspace = tmpdir / "ws"
    for name in projects:
        (workspace / name / "tests").mkdir(parents=True)
        (workspace / name / "elm.json").write_text("{}")
        (workspace / name / "tests" / "SuiteA.elm").write_text("module SuiteA\n")
    return workspace


def _write_config(tmpdir: Path, workspace: Path, discovery: bool = True) -> None:
    config = {
        "test_command": [_make_script(tmpdir, "run-tests.sh", TEST_SCRIPT)],
    }
    if discovery:
        config["discovery_command"] = [
            _make_script(tmpdir, "find-tests.sh", DISCOVERY_SCRIPT),
        ]
    (workspace / ".explorer_config").write_text(json.dumps(config))


class TestParseArgs:
    """Tests for command-line parsing."""

    def test_discover(self):
        args = parse_args(["discover", "/path/ws"])
        assert args.command == "discover"
        assert args.workspace == Path("/path/ws")
        assert args.config_file is None

    def test_run_defaults(self):
        args = parse_args(["run", "/path/ws"])
        assert args.command == "run"
        assert args.select == []
        assert args.exclude == []
        assert args.output is None

    def test_run_repeated_selection(self):
        args = parse_args([
            "run", "/path/ws",
            "--select", "app/Suite A/t1",
            "--select", "app/Suite A/t2",
            "--exclude", "app/Suite A/t2",
            "--output", "report.yaml",
            "--config-file", "/etc/explorer.json",
        ])
        assert args.select == ["app/Suite A/t1", "app/Suite A/t2"]
        assert args.exclude == ["app/Suite A/t2"]
        assert args.output == Path("report.yaml")
        assert args.config_file == Path("/etc/explorer.json")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestFindNode:
    """Tests for node lookup by id and display path."""

    def _tree(self):
        tree = ExplorerTree()
        workspace = tree.add_workspace("file:///ws")
        project = workspace.add_child(
            create_project_node("file:///ws/app", workspace)
        )
        suite = project.add_child(create_suite_node(
            "Suite A", "file:///ws/app/tests/SuiteA.elm", 0, 0, project,
        ))
        test = suite.add_child(create_suite_node(
            "t1", "file:///ws/app/tests/SuiteA.elm", 3, 4, project,
            ("Suite A",),
        ))
        return tree, project, suite, test

    def test_display_path(self):
        _, project, suite, test = self._tree()
        assert display_path(project) == "app"
        assert display_path(suite) == "app/Suite A"
        assert display_path(test) == "app/Suite A/t1"

    def test_find_by_id(self):
        tree, _, _, test = self._tree()
        assert find_node(tree, test.id) is test

    def test_find_by_display_path(self):
        tree, project, _, test = self._tree()
        assert find_node(tree, "app/Suite A/t1") is test
        assert find_node(tree, "app") is project

    def test_unknown(self):
        tree, _, _, _ = self._tree()
        assert find_node(tree, "app/Suite B") is None


class TestCmdDiscover:
    """Tests for the discover subcommand."""

    def test_prints_tree(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)

            assert main(["discover", str(workspace)]) == 0

        out = capsys.readouterr().out
        assert "Tests (ws) [resolved]" in out
        assert "  app [resolved]" in out
        assert "    Suite A (tests/SuiteA.elm:3)" in out
        assert "      t1 (tests/SuiteA.elm:5)" in out

    def test_without_discovery_command(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace, discovery=False)

            assert main(["discover", str(workspace)]) == 0

        captured = capsys.readouterr()
        assert "no discovery_command configured" in captured.err
        assert "  app [resolved]" in captured.out
        assert "Suite A" not in captured.out

    def test_missing_workspace(self, capsys):
        assert main(["discover", "/nonexistent/ws"]) == 1
        assert "workspace folder not found" in capsys.readouterr().err


class TestCmdRun:
    """Tests for the run subcommand."""

    def test_run_all_passes(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)

            assert main(["run", str(workspace)]) == 0

        out = capsys.readouterr().out
        assert "[PASS] app" in out
        assert "Results: 1 passed, 0 failed, 0 errored" in out

    def test_failing_project_sets_exit_code(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir, ("app", "broken"))
            _write_config(tmpdir, workspace)

            assert main(["run", str(workspace)]) == 1

        out = capsys.readouterr().out
        assert "[PASS] app" in out
        assert "[FAIL] broken" in out
        assert "Compilation failed" in out

    def test_select_single_test(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)
            report = tmpdir / "report.json"

            rc = main([
                "run", str(workspace),
                "--select", "app/Suite A/t1",
                "--output", str(report),
            ])
            assert rc == 0
            data = json.loads(report.read_text())

        nodes = data["run"]["nodes"]
        states = {node["label"]: node["state"] for node in nodes}
        assert states == {"t1": "running", "app": "passed"}
        assert "ran in app: tests/SuiteA.elm" in data["run"]["output"]
        assert "Report written to:" in capsys.readouterr().out

    def test_yaml_report(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)
            report = tmpdir / "report.yaml"

            assert main(["run", str(workspace), "--output", str(report)]) == 0
            data = yaml.safe_load(report.read_text())

        assert data["run"]["summary"]["passed"] == 1
        assert data["run"]["ended_at"] is not None

    def test_unwritable_report(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)
            blocker = tmpdir / "blocker"
            blocker.write_text("")

            rc = main([
                "run", str(workspace),
                "--output", str(blocker / "report.json"),
            ])

        assert rc == 1
        assert "could not write report" in capsys.readouterr().err

    def test_unknown_selection(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            _write_config(tmpdir, workspace)

            rc = main(["run", str(workspace), "--select", "app/Nope"])

        assert rc == 1
        assert "unknown test node: app/Nope" in capsys.readouterr().err


class TestCmdConfigure:
    """Tests for the configure subcommand."""

    def test_writes_commands(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            workspace = Path(tmpdir)
            rc = main([
                "configure", str(workspace),
                "--test-command", "npx elm-test-rs --report json",
                "--discovery-command", "'find tests' --json",
            ])
            assert rc == 0
            data = json.loads((workspace / ".explorer_config").read_text())

        assert data["test_command"] == ["npx", "elm-test-rs", "--report", "json"]
        assert data["discovery_command"] == ["find tests", "--json"]
        assert data["manifest_name"] == "elm.json"
        assert "Config written to:" in capsys.readouterr().out

    def test_keeps_other_keys(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            workspace = Path(tmpdir)
            path = workspace / ".explorer_config"
            path.write_text(json.dumps({
                "tests_dir": "unit",
                "test_command": ["elm-test"],
            }))
            rc = main([
                "configure", str(workspace), "--discovery-command", "finder",
            ])
            assert rc == 0
            data = json.loads(path.read_text())

        assert data["tests_dir"] == "unit"
        assert data["test_command"] == ["elm-test"]
        assert data["discovery_command"] == ["finder"]

    def test_configured_commands_used_by_run(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmpdir = Path(tmpdir)
            workspace = _make_workspace(tmpdir)
            finder = _make_script(tmpdir, "find-tests.sh", DISCOVERY_SCRIPT)
            runner = _make_script(tmpdir, "run-tests.sh", TEST_SCRIPT)
            assert main([
                "configure", str(workspace),
                "--test-command", runner,
                "--discovery-command", finder,
            ]) == 0

            assert main([
                "run", str(workspace), "--select", "app/Suite A/t2",
            ]) == 0

        out = capsys.readouterr().out
        assert "[RAN] app/Suite A/t2" in out
        assert "[PASS] app" in out

    def test_nothing_to_configure(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            assert main(["configure", tmpdir]) == 1
            assert not (Path(tmpdir) / ".explorer_config").exists()
        assert "nothing to configure" in capsys.readouterr().err
