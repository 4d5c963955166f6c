"""Test execution: run planning, orchestration and the command adapter."""

from explorer.execution.adapter import CommandExecutionAdapter, ExecutionAdapter, RunOutcome
from explorer.execution.orchestrator import ProjectBatch, RunOrchestrator, RunRequest, plan_run

__all__ = [
    "CommandExecutionAdapter",
    "ExecutionAdapter",
    "ProjectBatch",
    "RunOrchestrator",
    "RunOutcome",
    "RunRequest",
    "plan_run",
]
