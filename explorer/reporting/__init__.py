"""Run sessions and JSON/YAML run reports."""

from explorer.reporting.session import (
    ERRORED,
    FAILED,
    PASSED,
    QUEUED,
    RUNNING,
    SKIPPED,
    RunMessage,
    RunSession,
)

__all__ = [
    "ERRORED",
    "FAILED",
    "PASSED",
    "QUEUED",
    "RUNNING",
    "SKIPPED",
    "RunMessage",
    "RunSession",
]
