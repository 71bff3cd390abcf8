"""Execution administration - list, inspect, cancel, retry and summarize runs."""

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from crm_workflows.constants import (
    MANUAL_TRIGGER_EVENT,
    WORKFLOW_DEFINITIONS_TABLE,
    WORKFLOW_EXECUTIONS_TABLE,
)
from crm_workflows.core.exceptions import (
    DefinitionError,
    ExecutionNotFoundError,
    RetryLimitExceededError,
)
from crm_workflows.core.logging import get_logger
from crm_workflows.core.store import RecordFilter
from crm_workflows.models.workflow import WorkflowDefinition
from crm_workflows.services.execution.models import (
    TERMINAL_STATUSES,
    ExecutionStats,
    RunResult,
    WorkflowStatus,
    utc_now,
)

if TYPE_CHECKING:
    from crm_workflows.core.config import Settings
    from crm_workflows.core.store import RecordStore
    from crm_workflows.services.execution.executor import WorkflowExecutor

logger = get_logger(__name__)


class ExecutionService:
    """Administrative operations over persisted executions."""

    def __init__(self, store: "RecordStore", executor: "WorkflowExecutor", settings: "Settings"):
        self.store = store
        self.executor = executor
        self.settings = settings

    # ============================================================================
    # Queries
    # ============================================================================

    async def list_executions(self, workflow_id: Optional[str] = None,
                              limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Executions newest first, optionally for one workflow."""
        where = {"workflow_id": workflow_id} if workflow_id else None
        return await self.store.select(
            WORKFLOW_EXECUTIONS_TABLE,
            where,
            order_by="started_at",
            descending=True,
            limit=limit or self.settings.execution_list_limit,
        )

    async def get_execution(self, execution_id: str) -> Dict[str, Any]:
        rows = await self.store.select(WORKFLOW_EXECUTIONS_TABLE, {"id": execution_id}, limit=1)
        if not rows:
            raise ExecutionNotFoundError(execution_id)
        return rows[0]

    async def get_definition(self, workflow_id: str) -> WorkflowDefinition:
        rows = await self.store.select(WORKFLOW_DEFINITIONS_TABLE, {"id": workflow_id}, limit=1)
        if not rows:
            raise DefinitionError(f"Workflow '{workflow_id}' not found")
        return WorkflowDefinition.from_record(rows[0])

    # ============================================================================
    # Commands
    # ============================================================================

    async def cancel_execution(self, execution_id: str) -> bool:
        """Mark a running execution cancelled.

        Only flips the persisted status; an in-flight run is not interrupted.

        Returns:
            True if the execution was running and is now cancelled

        Raises:
            ExecutionNotFoundError: If the execution does not exist
        """
        execution = await self.get_execution(execution_id)
        if execution.get("status") in TERMINAL_STATUSES:
            logger.info("Execution already finished, nothing to cancel",
                        execution_id=execution_id, status=execution.get("status"))
            return False

        updated = await self.store.update(
            WORKFLOW_EXECUTIONS_TABLE,
            {"status": WorkflowStatus.CANCELLED.value, "completed_at": utc_now().isoformat()},
            {"id": execution_id, "status": WorkflowStatus.RUNNING.value},
        )
        if updated:
            logger.info("Execution cancelled", execution_id=execution_id)
        else:
            logger.info("Execution not running, nothing to cancel", execution_id=execution_id)
        return updated > 0

    async def retry_execution(self, execution_id: str) -> RunResult:
        """Start a new run with the trigger event and payload of an earlier one.

        Raises:
            ExecutionNotFoundError: If the execution does not exist
            RetryLimitExceededError: If the definition's max_retries is reached
            DefinitionError: If the workflow is missing or invalid
        """
        original = await self.get_execution(execution_id)
        definition = await self.get_definition(original["workflow_id"])

        retry_count = original.get("retry_count") or 0
        if retry_count >= definition.max_retries:
            raise RetryLimitExceededError(execution_id, definition.max_retries)

        logger.info("Retrying execution", execution_id=execution_id,
                    workflow_id=definition.id, retry_count=retry_count + 1)
        return await self.executor.run_once(
            definition,
            original.get("trigger_event") or MANUAL_TRIGGER_EVENT,
            original.get("trigger_data") or {},
            retry_count=retry_count + 1,
        )

    async def start_manual(self, workflow_id: str,
                           payload: Optional[Dict[str, Any]] = None) -> RunResult:
        """Run a workflow now, regardless of its trigger type or active flag."""
        definition = await self.get_definition(workflow_id)
        return await self.executor.run_once(definition, MANUAL_TRIGGER_EVENT, payload or {})

    # ============================================================================
    # Statistics
    # ============================================================================

    async def execution_stats(self, workflow_id: Optional[str] = None) -> ExecutionStats:
        """Totals, success rate and mean duration over the stats window."""
        since = utc_now() - timedelta(days=self.settings.execution_stats_window_days)
        filters = [RecordFilter("started_at", "greater_than_or_equal", since.isoformat())]
        if workflow_id:
            filters.append(RecordFilter("workflow_id", "equals", workflow_id))

        rows = await self.store.select(WORKFLOW_EXECUTIONS_TABLE, filters)

        total = len(rows)
        completed = sum(1 for r in rows if r.get("status") == WorkflowStatus.COMPLETED.value)
        failed = sum(1 for r in rows if r.get("status") == WorkflowStatus.FAILED.value)
        running = sum(1 for r in rows if r.get("status") == WorkflowStatus.RUNNING.value)

        durations = [r["duration_ms"] for r in rows if r.get("duration_ms") is not None]
        avg_duration = sum(durations) / len(durations) if durations else 0
        success_rate = (completed / total) * 100 if total else 0.0

        return ExecutionStats(
            total=total,
            completed=completed,
            failed=failed,
            running=running,
            success_rate=round(success_rate, 1),
            avg_duration_ms=int(round(avg_duration)),
        )
