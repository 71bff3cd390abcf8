"""Workflow executor - breadth-first coordinator for a single run.

Implements:
- One execution record per run, created as ``running`` and finalized once
- Breadth-first walk with a visited set (a node id runs at most once)
- Step log and current step persisted after every node
- Per-definition ``stop``/``continue`` error policy
"""

import time
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, Dict, Optional, Set, Tuple

from crm_workflows.constants import (
    ERROR_HANDLING_STOP,
    UNKNOWN_NODE_TYPE,
    WORKFLOW_EXECUTIONS_TABLE,
)
from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.logging import bind_execution, get_logger
from crm_workflows.models.workflow import FlowDefinition, WorkflowDefinition, WorkflowNode
from .graph import next_nodes, start_nodes
from .models import (
    ExecutionContext,
    ExecutionStep,
    NodeResult,
    RunResult,
    TaskStatus,
    WorkflowStatus,
    utc_now,
)

if TYPE_CHECKING:
    from crm_workflows.core.store import RecordStore
    from crm_workflows.services.node_executor import NodeExecutor

logger = get_logger(__name__)

NO_NODES_ERROR = "No nodes in workflow"


class WorkflowExecutor:
    """Runs one workflow definition end to end.

    Features:
    - Isolated ExecutionContext per run, so concurrent runs share nothing
      but the record store
    - Node executors awaited sequentially even on fan-out
    - Storage failures while recording progress are logged, not fatal
    """

    def __init__(self, store: "RecordStore", node_executor: "NodeExecutor"):
        self.store = store
        self.node_executor = node_executor

    async def run_once(
        self,
        definition: WorkflowDefinition,
        trigger_event: str,
        trigger_payload: Optional[Dict[str, Any]] = None,
        *,
        retry_count: int = 0,
    ) -> RunResult:
        """Execute ``definition`` once for a trigger.

        Args:
            definition: Validated workflow definition
            trigger_event: Event name recorded on the execution
            trigger_payload: Seed for the run's variables
            retry_count: Number of retries preceding this run

        Returns:
            RunResult with success flag, execution id and error message
        """
        run_start = time.monotonic()
        payload = dict(trigger_payload or {})

        try:
            record = await self.store.insert(WORKFLOW_EXECUTIONS_TABLE, {
                "workflow_id": definition.id,
                "trigger_event": trigger_event,
                "trigger_data": payload,
                "entity_type": payload.get("entity_type"),
                "entity_id": payload.get("entity_id"),
                "status": WorkflowStatus.RUNNING.value,
                "steps_executed": [],
                "current_step_id": None,
                "started_at": utc_now().isoformat(),
                "retry_count": retry_count,
            })
        except StorageError as e:
            logger.error("Failed to create execution record", workflow_id=definition.id, error=e.message)
            return RunResult(success=False, execution_id="", error=e.message)

        context = ExecutionContext.create(
            workflow_id=definition.id,
            execution_id=record["id"],
            trigger_event=trigger_event,
            trigger_data=payload,
            workflow_name=definition.name,
        )
        context.start_time = run_start

        with bind_execution(context.execution_id, definition.id, trigger_event):
            logger.info("Starting workflow execution", retry_count=retry_count)

            frontier = start_nodes(definition.flow_definition)
            if not frontier:
                await self._finalize(context, WorkflowStatus.FAILED, NO_NODES_ERROR)
                return RunResult(success=False, execution_id=context.execution_id,
                                 error=NO_NODES_ERROR, status=WorkflowStatus.FAILED.value)

            error_message = await self._walk(definition, context, deque(frontier))

            status = WorkflowStatus.FAILED if error_message else WorkflowStatus.COMPLETED
            await self._finalize(context, status, error_message)

        return RunResult(
            success=error_message is None,
            execution_id=context.execution_id,
            error=error_message,
            status=status.value,
        )

    async def _walk(self, definition: WorkflowDefinition, context: ExecutionContext,
                    queue: Deque[WorkflowNode]) -> Optional[str]:
        """Main BFS loop. Returns the stopping error, or None."""
        flow = definition.flow_definition
        executed: Set[str] = set()

        while queue:
            node = queue.popleft()

            # Re-visits are dropped, which is what breaks cycles
            if node.id in executed:
                continue
            executed.add(node.id)
            context.current_node_id = node.id

            step, result = await self._execute_step(node, flow, context)

            if step.status == TaskStatus.FAILED:
                if definition.error_handling == ERROR_HANDLING_STOP:
                    logger.error("Node failed, stopping workflow",
                                 node_id=node.id,
                                 error=step.error)
                    return step.error or "Node execution failed"
                logger.warning("Node failed, continuing",
                               node_id=node.id,
                               error_handling=definition.error_handling,
                               error=step.error)

            for successor in next_nodes(node.id, flow, result.next_node_ids):
                if successor.id not in executed:
                    queue.append(successor)

        return None

    async def _execute_step(self, node: WorkflowNode, flow: FlowDefinition,
                            context: ExecutionContext) -> Tuple[ExecutionStep, NodeResult]:
        """Run one node, append its step and persist progress."""
        step = ExecutionStep(
            node_id=node.id,
            node_type=node.type or UNKNOWN_NODE_TYPE,
            status=TaskStatus.RUNNING,
            started_at=utc_now().isoformat(),
        )
        started = time.monotonic()

        result = await self.node_executor.execute(node, flow, context)

        step.status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        step.completed_at = utc_now().isoformat()
        step.duration_ms = int((time.monotonic() - started) * 1000)
        step.output = result.output
        step.error = result.error
        context.steps.append(step)

        await self._record_progress(context)
        return step, result

    async def _record_progress(self, context: ExecutionContext) -> None:
        try:
            await self.store.update(
                WORKFLOW_EXECUTIONS_TABLE,
                {
                    "steps_executed": context.steps_as_dicts(),
                    "current_step_id": context.current_node_id,
                },
                {"id": context.execution_id},
            )
        except StorageError as e:
            logger.error("Failed to record execution progress",
                         node_id=context.current_node_id,
                         error=e.message)

    async def _finalize(self, context: ExecutionContext, status: WorkflowStatus,
                        error_message: Optional[str] = None) -> None:
        duration_ms = context.elapsed_ms()
        patch: Dict[str, Any] = {
            "status": status.value,
            "completed_at": utc_now().isoformat(),
            "duration_ms": duration_ms,
            "steps_executed": context.steps_as_dicts(),
        }
        if error_message:
            patch["error_message"] = error_message

        try:
            await self.store.update(WORKFLOW_EXECUTIONS_TABLE, patch, {"id": context.execution_id})
        except StorageError as e:
            logger.error("Failed to finalize execution",
                         status=status.value,
                         error=e.message)

        logger.info("Workflow execution finished",
                    status=status.value,
                    steps=len(context.steps),
                    duration_ms=duration_ms,
                    error=error_message)
