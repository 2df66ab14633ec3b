"""Execution monitoring for generated programs."""

import hashlib
import time
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def hash_code(code: str) -> str:
    """Short, stable fingerprint of a program's source."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()[:16]


class ExecutionMonitor:
    """Tracks executions run by one CodeExecutor."""

    def __init__(self, history_limit: int = 1000) -> None:
        """Initialize execution monitor.

        Args:
            history_limit: Finished executions kept in memory
        """
        self.history_limit = history_limit
        self.execution_history: list[dict[str, Any]] = []
        self.active_executions: dict[str, dict[str, Any]] = {}

    def start_execution(self, execution_id: str, code: str, language: str) -> None:
        """Start monitoring an execution.

        Args:
            execution_id: Unique execution identifier
            code: Code being executed
            language: Target language value
        """
        self.active_executions[execution_id] = {
            "execution_id": execution_id,
            "code_hash": hash_code(code),
            "language": language,
            "start_time": time.monotonic(),
            "code_length": len(code),
        }

    def end_execution(
        self,
        execution_id: str,
        *,
        success: bool,
        exit_code: int | None = None,
        error: str | None = None,
    ) -> float:
        """End monitoring an execution.

        Args:
            execution_id: Execution identifier
            success: Whether execution was successful
            exit_code: Child exit status, None if it never ran to completion
            error: Error message if failed

        Returns:
            Duration in seconds, 0.0 for an unknown execution id
        """
        execution_info = self.active_executions.pop(execution_id, None)
        if execution_info is None:
            logger.warning("Execution not found in active list", execution_id=execution_id)
            return 0.0

        execution_info["duration"] = time.monotonic() - execution_info["start_time"]
        execution_info["success"] = success
        execution_info["exit_code"] = exit_code
        execution_info["error"] = error

        self.execution_history.append(execution_info)
        if len(self.execution_history) > self.history_limit:
            del self.execution_history[: -self.history_limit]

        return execution_info["duration"]

    def get_execution_stats(self) -> dict[str, Any]:
        """Get execution statistics.

        Returns:
            Dictionary with execution statistics
        """
        total_executions = len(self.execution_history)
        successful_executions = sum(1 for ex in self.execution_history if ex["success"])

        avg_duration = 0.0
        if total_executions > 0:
            avg_duration = sum(ex["duration"] for ex in self.execution_history) / total_executions

        return {
            "total_executions": total_executions,
            "successful_executions": successful_executions,
            "failed_executions": total_executions - successful_executions,
            "success_rate": successful_executions / total_executions if total_executions > 0 else 0,
            "average_duration": avg_duration,
            "active_executions": len(self.active_executions),
        }

    def get_recent_executions(self, limit: int = 10) -> list[dict[str, Any]]:
        """Most recent finished executions, oldest first."""
        if limit <= 0:
            return []
        return self.execution_history[-limit:]
