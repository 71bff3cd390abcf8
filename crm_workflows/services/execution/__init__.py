"""Execution engine package.

Breadth-first graph interpreter with:
- Per-run ExecutionContext threaded through every handler
- Visited-set cycle tolerance
- Per-definition stop/continue error policy
- Step log persisted after every node
"""

from .models import (
    TaskStatus,
    WorkflowStatus,
    TERMINAL_STATUSES,
    ExecutionContext,
    ExecutionStep,
    ExecutionStats,
    NodeResult,
    RunResult,
)
from .conditions import (
    evaluate_condition,
    evaluate_conditions,
    get_available_operators,
)
from .graph import next_nodes, start_nodes
from .executor import WorkflowExecutor

__all__ = [
    "TaskStatus",
    "WorkflowStatus",
    "TERMINAL_STATUSES",
    "ExecutionContext",
    "ExecutionStep",
    "ExecutionStats",
    "NodeResult",
    "RunResult",
    "evaluate_condition",
    "evaluate_conditions",
    "get_available_operators",
    "next_nodes",
    "start_nodes",
    "WorkflowExecutor",
]
