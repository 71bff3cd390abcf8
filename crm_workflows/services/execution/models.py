"""Execution engine state models.

The context is owned by one coordinator run and threaded explicitly through
every node handler call; nothing here is module-level mutable state.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskStatus(str, Enum):
    """Step lifecycle.

    State transitions:
        PENDING -> RUNNING -> COMPLETED
                           -> FAILED
        SKIPPED (recorded for intent only; unknown nodes report success)
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(str, Enum):
    """Execution record states."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


TERMINAL_STATUSES = frozenset([
    WorkflowStatus.COMPLETED.value,
    WorkflowStatus.FAILED.value,
    WorkflowStatus.CANCELLED.value,
])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NodeResult:
    """Outcome of executing one node.

    ``next_node_ids`` is None to follow every outgoing edge, or an explicit
    list (possibly empty) chosen by a branching node.
    """
    success: bool
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    next_node_ids: Optional[List[str]] = None

    @classmethod
    def ok(cls, output: Optional[Dict[str, Any]] = None,
           next_node_ids: Optional[List[str]] = None) -> "NodeResult":
        return cls(success=True, output=output, next_node_ids=next_node_ids)

    @classmethod
    def fail(cls, error: str, output: Optional[Dict[str, Any]] = None) -> "NodeResult":
        return cls(success=False, error=error, output=output)


@dataclass
class ExecutionStep:
    """Recorded outcome of one node within one execution."""
    node_id: str
    node_type: str
    status: TaskStatus = TaskStatus.PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data = {
            "node_id": self.node_id,
            "node_type": self.node_type,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_ms": self.duration_ms,
            "output": self.output,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ExecutionContext:
    """Variable scope and step log of a single run."""
    workflow_id: str
    execution_id: str
    trigger_event: str
    trigger_data: Dict[str, Any]
    variables: Dict[str, Any] = field(default_factory=dict)
    steps: List[ExecutionStep] = field(default_factory=list)
    current_node_id: Optional[str] = None
    start_time: float = field(default_factory=time.monotonic)

    @classmethod
    def create(cls, workflow_id: str, execution_id: str, trigger_event: str,
               trigger_data: Dict[str, Any], workflow_name: str = "") -> "ExecutionContext":
        """Seed variables from the trigger payload plus the ``system`` namespace."""
        now = utc_now()
        trigger_data = dict(trigger_data or {})
        return cls(
            workflow_id=workflow_id,
            execution_id=execution_id,
            trigger_event=trigger_event,
            trigger_data=trigger_data,
            variables={
                **trigger_data,
                "system": {
                    "current_date": now.date().isoformat(),
                    "current_time": now.isoformat(),
                    "workflow_name": workflow_name,
                },
            },
        )

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def steps_as_dicts(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.steps]


@dataclass
class RunResult:
    """Return value of a single coordinator run."""
    success: bool
    execution_id: str
    error: Optional[str] = None
    status: Optional[str] = None


@dataclass
class ExecutionStats:
    """Aggregate figures over recent executions."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    running: int = 0
    success_rate: float = 0.0
    avg_duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "running": self.running,
            "success_rate": self.success_rate,
            "avg_duration_ms": self.avg_duration_ms,
        }
