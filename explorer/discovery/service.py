"""Discovery service interface and a command-backed implementation.

The resolver only depends on ``DiscoveryService.find_tests()``.  In an
editor this is a language-server request; CommandDiscoveryService runs a
configured command instead, passing the project folder as the last
argument and reading the find-tests JSON from its stdout.
"""

from __future__ import annotations

import asyncio
import json
import subprocess
import sys
from typing import Protocol

from explorer.discovery.protocol import (
    FindTestsParams,
    SuiteDescriptor,
    parse_find_tests_response,
)
from explorer.tree.uris import uri_to_path


class DiscoveryError(RuntimeError):
    """The discovery service could not list the tests of a project."""


class DiscoveryService(Protocol):
    async def find_tests(
        self, params: FindTestsParams
    ) -> list[SuiteDescriptor]:
        ...


class CommandDiscoveryService:
    """Lists tests by running an external command per project.

    Uses subprocess.run in a thread executor, like the execution adapter,
    so discovery of sibling projects can overlap.
    """

    def __init__(self, command: list[str], timeout: float = 60.0) -> None:
        if not command:
            raise ValueError("Discovery command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    async def find_tests(
        self, params: FindTestsParams
    ) -> list[SuiteDescriptor]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._find_tests_sync, params)

    def _fail(self, message: str) -> DiscoveryError:
        print(f"Discovery: {message}", file=sys.stderr)
        return DiscoveryError(message)

    def _find_tests_sync(self, params: FindTestsParams) -> list[SuiteDescriptor]:
        """Run the discovery command for one project (thread pool).

        Raises:
            DiscoveryError: On any failure; a warning is printed first.
        """
        try:
            folder = uri_to_path(params.project_folder)
        except ValueError as e:
            raise self._fail(str(e))

        argv = self.command + [str(folder)]
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=folder,
            )
        except FileNotFoundError:
            raise self._fail(f"{self.command[0]} not found in PATH")
        except subprocess.TimeoutExpired:
            raise self._fail(
                f"{self.command[0]} timed out after {self.timeout}s "
                f"for {folder}"
            )
        except OSError as e:
            raise self._fail(f"could not run {self.command[0]}: {e}")

        if result.returncode != 0:
            raise self._fail(
                f"{self.command[0]} failed for {folder} "
                f"(exit {result.returncode}): {result.stderr.strip()}"
            )

        if not result.stdout.strip():
            return []

        try:
            return parse_find_tests_response(json.loads(result.stdout))
        except json.JSONDecodeError as e:
            raise self._fail(f"invalid JSON from {self.command[0]}: {e}")
        except ValueError as e:
            raise self._fail(str(e))
