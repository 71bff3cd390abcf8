"""Control flow node handlers - Condition, Delay, Loop."""

import asyncio
import math
import sys
from typing import TYPE_CHECKING, Any, Optional

from crm_workflows.constants import DELAY_UNIT_MS, FALSE_HANDLE, TRUE_HANDLE
from crm_workflows.core.logging import get_logger
from crm_workflows.services.execution.conditions import evaluate_condition
from crm_workflows.services.execution.models import NodeResult
from crm_workflows.services.parameter_resolver import get_nested_value, resolve_variables

if TYPE_CHECKING:
    from crm_workflows.core.config import Settings
    from crm_workflows.models.nodes import ConditionParams, DelayParams, LoopParams
    from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
    from crm_workflows.services.execution.models import ExecutionContext

logger = get_logger(__name__)


def _branch_target(flow: "FlowDefinition", node_id: str, handle: str) -> Optional[str]:
    for edge in flow.outgoing(node_id):
        if edge.source_handle == handle:
            return edge.target
    return None


async def handle_condition(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "ConditionParams",
) -> NodeResult:
    """Evaluate the predicate and pick the matching true/false edge.

    The chosen target is the sole successor. Without a matching edge the
    branch ends here.
    """
    result = evaluate_condition(params.field, params.operator, params.value, context.variables)
    target = _branch_target(flow, node.id, TRUE_HANDLE if result else FALSE_HANDLE)

    return NodeResult.ok(
        output={
            "condition": {"field": params.field, "operator": params.operator, "value": params.value},
            "result": result,
        },
        next_node_ids=[target] if target else [],
    )


def _delay_amount(raw: Any, variables) -> float:
    if raw is None or raw == "":
        return 1.0
    try:
        amount = float(resolve_variables(raw, variables))
    except (TypeError, ValueError):
        logger.warning("Invalid delay value, not delaying", delay_value=raw)
        return 0.0
    if not math.isfinite(amount):
        logger.warning("Non-finite delay value, not delaying", delay_value=raw)
        return 0.0
    return max(amount, 0.0)


async def handle_delay(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "DelayParams",
    settings: "Settings",
) -> NodeResult:
    """Suspend this run for the requested duration, capped by ``max_delay_seconds``."""
    unit_ms = DELAY_UNIT_MS.get(params.delay_unit, DELAY_UNIT_MS["seconds"])
    requested = _delay_amount(params.delay_value, context.variables) * unit_ms
    requested_ms = int(requested) if math.isfinite(requested) else sys.maxsize
    delay_ms = min(requested_ms, settings.max_delay_ms)

    if delay_ms < requested_ms:
        logger.debug("Delay capped", node_id=node.id, requested_ms=requested_ms, delay_ms=delay_ms)

    await asyncio.sleep(delay_ms / 1000)

    return NodeResult.ok(output={"delayed": True, "delay_ms": delay_ms, "requested_ms": requested_ms})


async def handle_loop(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "LoopParams",
) -> NodeResult:
    """Report the length and members of an array found by dotted path.

    Successors run once; a non-array source is a zero-length loop.
    """
    items = get_nested_value(context.variables, params.array_source)
    if not isinstance(items, list):
        return NodeResult.ok(output={"looped": 0})

    return NodeResult.ok(output={
        "looped": len(items),
        "items": items,
        "item_variable": params.item_variable,
    })
