"""Trigger Dispatcher - starts workflow runs for CRM domain events.

Finds active event-triggered definitions bound to an event and starts one
independent coordinator run per match. Dispatch failures are logged and
never reach the code that raised the domain event.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from crm_workflows.constants import WORKFLOW_DEFINITIONS_TABLE
from crm_workflows.core.exceptions import DefinitionError, StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.models.workflow import WorkflowDefinition
from crm_workflows.services.execution.conditions import evaluate_conditions
from crm_workflows.services.execution.models import RunResult

if TYPE_CHECKING:
    from crm_workflows.core.store import RecordStore
    from crm_workflows.services.execution.executor import WorkflowExecutor

logger = get_logger(__name__)


def compose_trigger_payload(entity_type: str, entity_id: str,
                            payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Build the run payload: entity keys, the payload under the entity type, then its fields."""
    payload = dict(payload or {})
    return {
        "entity_type": entity_type,
        "entity_id": entity_id,
        entity_type: payload,
        **payload,
    }


class TriggerDispatcher:
    """Maps domain events onto workflow runs."""

    def __init__(self, store: "RecordStore", executor: "WorkflowExecutor"):
        self.store = store
        self.executor = executor
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of fire-and-forget dispatches still running."""
        return len(self._tasks)

    async def matching_definitions(self, event_name: str,
                                   trigger_payload: Dict[str, Any]) -> List[WorkflowDefinition]:
        """Active event-triggered definitions for ``event_name`` whose conditions hold."""
        try:
            rows = await self.store.select(
                WORKFLOW_DEFINITIONS_TABLE,
                {"is_active": True, "trigger_type": "event"},
            )
        except StorageError as e:
            logger.error("Failed to fetch workflows", event_name=event_name, error=e.message)
            return []

        matches: List[WorkflowDefinition] = []
        for row in rows:
            if (row.get("trigger_config") or {}).get("event") != event_name:
                continue

            try:
                definition = WorkflowDefinition.from_record(row)
            except DefinitionError as e:
                logger.warning("Skipping invalid workflow definition",
                               workflow_id=row.get("id"), error=e.message)
                continue

            if not evaluate_conditions(definition.trigger_config.conditions, trigger_payload):
                logger.debug("Trigger conditions not met",
                             workflow_id=definition.id, event_name=event_name)
                continue

            matches.append(definition)

        return matches

    async def trigger(self, event_name: str, entity_type: str, entity_id: str,
                      payload: Optional[Dict[str, Any]] = None) -> List[RunResult]:
        """Run every matching workflow concurrently and wait for all of them.

        Returns:
            One RunResult per run that returned; an empty list when nothing matched
        """
        trigger_payload = compose_trigger_payload(entity_type, entity_id, payload)
        definitions = await self.matching_definitions(event_name, trigger_payload)

        if not definitions:
            logger.debug("No workflows bound to event", event_name=event_name)
            return []

        logger.info("Triggering workflows", event_name=event_name, entity_type=entity_type,
                    entity_id=entity_id, workflows=[d.id for d in definitions])

        outcomes = await asyncio.gather(
            *(self.executor.run_once(d, event_name, trigger_payload) for d in definitions),
            return_exceptions=True,
        )

        results: List[RunResult] = []
        for definition, outcome in zip(definitions, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Workflow run raised", workflow_id=definition.id,
                             event_name=event_name, error=str(outcome))
                continue
            results.append(outcome)
        return results

    def dispatch(self, event_name: str, entity_type: str, entity_id: str,
                 payload: Optional[Dict[str, Any]] = None) -> asyncio.Task:
        """Fire-and-forget variant of :meth:`trigger`. Must be called inside a running loop."""
        task = asyncio.get_running_loop().create_task(
            self._dispatch_safely(event_name, entity_type, entity_id, payload),
            name=f"dispatch:{event_name}:{entity_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _dispatch_safely(self, event_name: str, entity_type: str, entity_id: str,
                               payload: Optional[Dict[str, Any]]) -> List[RunResult]:
        try:
            return await self.trigger(event_name, entity_type, entity_id, payload)
        except Exception as e:
            logger.error("Error triggering workflows", event_name=event_name, error=str(e))
            return []

    async def drain(self) -> None:
        """Wait for all in-flight dispatches."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
