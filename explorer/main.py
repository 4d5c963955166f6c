"""Command-line entry point for the test explorer.

Builds the test tree of a workspace folder and either prints it
(``discover``) or runs a selection of it (``run``); ``configure`` writes the
discovery and test commands to the config file.  Tests are selected by
node id or by display path (``Project/Suite/test``); with no selection
every project in the workspace runs.
"""

from __future__ import annotations

import argparse
import asyncio
import shlex
import sys
from pathlib import Path

from explorer.config import DEFAULT_CONFIG_FILE, ExplorerConfig
from explorer.discovery.protocol import FindTestsParams, SuiteDescriptor
from explorer.discovery.resolver import DiscoveryResolver
from explorer.discovery.service import CommandDiscoveryService
from explorer.execution.adapter import CommandExecutionAdapter
from explorer.execution.orchestrator import RunOrchestrator, RunRequest
from explorer.reporting.session import (
    ERRORED,
    FAILED,
    PASSED,
    RUNNING,
    SKIPPED,
    RunSession,
)
from explorer.tree.model import (
    PROJECT,
    SUITE,
    ExplorerTree,
    SuiteData,
    TreeNode,
    project_of,
)
from explorer.tree.uris import is_file_uri, uri_to_path


class _NoSuitesService:
    """Discovery stand-in used when no discovery command is configured."""

    async def find_tests(
        self, params: FindTestsParams
    ) -> list[SuiteDescriptor]:
        return []


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Test explorer - discovers and runs project unit tests"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.required = True

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "workspace",
            type=Path,
            help="Workspace folder to scan for test projects",
        )
        sub.add_argument(
            "--config-file",
            type=Path,
            default=None,
            help=f"Path to the config file (default: WORKSPACE/{DEFAULT_CONFIG_FILE})",
        )

    discover_parser = subparsers.add_parser(
        "discover",
        help="Print the test tree of a workspace",
    )
    add_common(discover_parser)

    run_parser = subparsers.add_parser(
        "run",
        help="Run tests and report per-project results",
    )
    add_common(run_parser)
    run_parser.add_argument(
        "--select",
        action="append",
        default=[],
        metavar="NODE",
        help="Node id or display path to run (repeatable, default: all)",
    )
    run_parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="NODE",
        help="Node id or display path to leave out (repeatable)",
    )
    run_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write a run report (.yaml/.yml for YAML, JSON otherwise)",
    )

    configure_parser = subparsers.add_parser(
        "configure",
        help="Set the commands used for discovery and test runs",
    )
    add_common(configure_parser)
    configure_parser.add_argument(
        "--test-command",
        default=None,
        help="Command that runs a project's tests (selected files are appended)",
    )
    configure_parser.add_argument(
        "--discovery-command",
        default=None,
        help="Command that prints the find-tests JSON for a project folder",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ExplorerConfig:
    path = args.config_file
    if path is None:
        path = args.workspace / DEFAULT_CONFIG_FILE
    return ExplorerConfig(path)


def build_resolver(config: ExplorerConfig) -> DiscoveryResolver:
    """Create a resolver from config.

    Without a discovery command projects are still found, but they have
    no suites and can only be run as a whole.
    """
    command = config.discovery_command
    if command is None:
        print(
            "Warning: no discovery_command configured, "
            "listing projects without suites",
            file=sys.stderr,
        )
        service = _NoSuitesService()
    else:
        service = CommandDiscoveryService(
            command, timeout=config.discovery_timeout,
        )
    return DiscoveryResolver(
        service,
        manifest_name=config.manifest_name,
        tests_dir=config.tests_dir,
        exclude_dirs=config.exclude_dirs,
    )


def display_path(node: TreeNode) -> str:
    """Human-readable path of a node: ``Project/Suite/test``."""
    if node.kind == PROJECT:
        return node.label
    if isinstance(node.data, SuiteData):
        project = project_of(node)
        prefix = project.label if project is not None else "?"
        return "/".join((prefix,) + node.data.label_path)
    return node.label


def find_node(tree: ExplorerTree, ref: str) -> TreeNode | None:
    """Look up a node by id, falling back to display path."""
    node = tree.find(ref)
    if node is not None:
        return node
    for candidate in tree.walk():
        if candidate.kind in (PROJECT, SUITE) and display_path(candidate) == ref:
            return candidate
    return None


def _location(node: TreeNode) -> str:
    assert isinstance(node.data, SuiteData)
    if not is_file_uri(node.data.file_uri):
        return node.data.file_uri
    project = project_of(node)
    path = uri_to_path(node.data.file_uri)
    if project is not None and project.uri is not None:
        try:
            path = path.relative_to(uri_to_path(project.uri))
        except ValueError:
            pass
    return f"{path}:{node.data.line + 1}"


def print_tree(node: TreeNode, depth: int = 0) -> None:
    """Print a subtree, one node per line."""
    indent = "  " * depth
    if isinstance(node.data, SuiteData):
        print(f"{indent}{node.label} ({_location(node)})")
    else:
        print(f"{indent}{node.label} [{node.status}]")
    for child in node.children.values():
        print_tree(child, depth + 1)


def print_results(tree: ExplorerTree, session: RunSession) -> None:
    """Print final node states, project messages and a summary."""
    icons = {
        PASSED: "PASS",
        FAILED: "FAIL",
        ERRORED: "ERROR",
        SKIPPED: "SKIP",
        RUNNING: "RAN",
    }
    for node in tree.walk():
        state = session.state_of(node)
        if state is None:
            continue
        icon = icons.get(state, state.upper())
        print(f"  [{icon}] {display_path(node)}")
        for message in session.messages.get(node.id, []):
            for line in message.message.strip().splitlines():
                print(f"         {line}")

    summary = session.summary()
    print()
    print(
        f"Results: {summary[PASSED]} passed, {summary[FAILED]} failed, "
        f"{summary[ERRORED]} errored"
    )


def cmd_discover(args: argparse.Namespace) -> int:
    """Handle the discover subcommand."""
    if not args.workspace.is_dir():
        print(f"Error: workspace folder not found: {args.workspace}", file=sys.stderr)
        return 1
    config = load_config(args)
    tree = ExplorerTree()
    workspace = tree.add_workspace(str(args.workspace))
    asyncio.run(build_resolver(config).resolve_tree(workspace))
    print_tree(workspace)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the run subcommand."""
    if not args.workspace.is_dir():
        print(f"Error: workspace folder not found: {args.workspace}", file=sys.stderr)
        return 1
    config = load_config(args)
    tree = ExplorerTree()
    workspace = tree.add_workspace(str(args.workspace))
    resolver = build_resolver(config)
    adapter = CommandExecutionAdapter(
        config.test_command, timeout=config.run_timeout,
    )

    async def discover_and_run() -> RunSession | None:
        await resolver.resolve_tree(workspace)
        include: list[TreeNode] = []
        exclude: list[TreeNode] = []
        for refs, target in ((args.select, include), (args.exclude, exclude)):
            for ref in refs:
                node = find_node(tree, ref)
                if node is None:
                    print(f"Error: unknown test node: {ref}", file=sys.stderr)
                    return None
                target.append(node)
        if not include:
            include = [workspace]
        session = RunSession(name=workspace.label)
        return await RunOrchestrator(adapter).run_tests(
            RunRequest(include=include, exclude=exclude), session,
        )

    session = asyncio.run(discover_and_run())
    if session is None:
        return 1

    print_results(tree, session)

    if args.output:
        try:
            if args.output.suffix in (".yaml", ".yml"):
                session.write_yaml(args.output)
            else:
                session.write_report(args.output)
        except OSError as e:
            print(f"Error: could not write report: {e}", file=sys.stderr)
            return 1
        print(f"Report written to: {args.output}")

    summary = session.summary()
    return 1 if summary[FAILED] or summary[ERRORED] else 0


def cmd_configure(args: argparse.Namespace) -> int:
    """Handle the configure subcommand."""
    if args.test_command is None and args.discovery_command is None:
        print(
            "Error: nothing to configure, pass --test-command "
            "and/or --discovery-command",
            file=sys.stderr,
        )
        return 1
    config = load_config(args)
    config.set_config(
        test_command=(
            shlex.split(args.test_command) if args.test_command else None
        ),
        discovery_command=(
            shlex.split(args.discovery_command)
            if args.discovery_command else None
        ),
    )
    try:
        config.save()
    except OSError as e:
        print(f"Error: could not write config: {e}", file=sys.stderr)
        return 1
    print(f"Config written to: {config.path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    if args.command == "discover":
        return cmd_discover(args)
    if args.command == "configure":
        return cmd_configure(args)
    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
