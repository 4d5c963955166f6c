"""Execution adapters: run the tests of one project.

The orchestrator hands an adapter a workspace folder, a project folder and
a list of test file URIs (empty meaning "all tests of the project") and
gets back a RunOutcome: either a success carrying the runner's result or a
failure carrying an error message.  Adapters report failures through the
outcome rather than by raising.

CommandExecutionAdapter runs the configured test command (``elm-test`` by
default) in the project folder, with the selected files as arguments.
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Protocol

from explorer.tree.uris import uri_to_path


@dataclass
class RunOutcome:
    """Result of running one project's tests.

    Exactly one of ``result`` (success) or ``error`` (failure) is
    meaningful; ``ok`` tells which.
    """

    result: Any = None
    error: str | None = None
    output: str = ""
    duration: float = 0.0
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: Any, **kwargs: Any) -> RunOutcome:
        return cls(result=result, **kwargs)

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> RunOutcome:
        return cls(error=error or "Test run failed", **kwargs)


class ExecutionAdapter(Protocol):
    async def run(
        self,
        workspace_folder: str,
        project_folder: str,
        files: list[str],
    ) -> RunOutcome:
        ...


class CommandExecutionAdapter:
    """Runs a project's tests with an external command.

    Uses subprocess.run in a thread executor to avoid asyncio subprocess
    child watcher issues in containerized environments.
    """

    def __init__(
        self, command: list[str] | None = None, timeout: float = 600.0
    ) -> None:
        self.command = list(command) if command else ["elm-test"]
        self.timeout = timeout

    async def run(
        self,
        workspace_folder: str,
        project_folder: str,
        files: list[str],
    ) -> RunOutcome:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._run_sync, workspace_folder, project_folder, list(files)
        )

    def build_argv(self, project_dir: str, files: list[str]) -> list[str]:
        """Build the command line; file paths are made project-relative."""
        argv = list(self.command)
        for file_uri in files:
            path = str(uri_to_path(file_uri))
            try:
                rel = os.path.relpath(path, project_dir)
            except ValueError:
                rel = path
            argv.append(path if rel.startswith("..") else rel)
        return argv

    def _run_sync(
        self,
        workspace_folder: str,
        project_folder: str,
        files: list[str],
    ) -> RunOutcome:
        """Run the command for one project (called from thread pool)."""
        try:
            workspace_dir = str(uri_to_path(workspace_folder))
            project_dir = str(uri_to_path(project_folder))
            argv = self.build_argv(project_dir, files)
        except ValueError as e:
            return RunOutcome.failure(f"Invalid run target: {e}")

        if os.path.commonpath([workspace_dir, project_dir]) != workspace_dir:
            return RunOutcome.failure(
                f"Project {project_dir} is outside workspace {workspace_dir}"
            )

        start_time = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=project_dir,
            )
        except subprocess.TimeoutExpired:
            return RunOutcome.failure(
                f"Test run timed out after {self.timeout} seconds",
                duration=time.monotonic() - start_time,
                exit_code=-1,
            )
        except FileNotFoundError:
            return RunOutcome.failure(
                f"Test command not found: {argv[0]}",
                duration=time.monotonic() - start_time,
                exit_code=-1,
            )
        except OSError as e:
            return RunOutcome.failure(
                f"OS error running tests: {e}",
                duration=time.monotonic() - start_time,
                exit_code=-1,
            )

        duration = time.monotonic() - start_time
        if proc.returncode == 0:
            return RunOutcome.success(
                proc.stdout,
                output=proc.stdout,
                duration=duration,
                exit_code=0,
            )
        error = (
            proc.stderr.strip()
            or proc.stdout.strip()
            or f"{argv[0]} exited with code {proc.returncode}"
        )
        return RunOutcome.failure(
            error,
            output=proc.stdout + proc.stderr,
            duration=duration,
            exit_code=proc.returncode,
        )
