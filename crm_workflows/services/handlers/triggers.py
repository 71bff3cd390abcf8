"""Trigger node handler."""

from typing import TYPE_CHECKING

from crm_workflows.services.execution.models import NodeResult

if TYPE_CHECKING:
    from crm_workflows.models.nodes import TriggerParams
    from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
    from crm_workflows.services.execution.models import ExecutionContext


async def handle_trigger(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "TriggerParams",
) -> NodeResult:
    """Pass the trigger payload through as the node output."""
    return NodeResult.ok(output=dict(context.trigger_data))
