"""Node Executor - Single node execution with handler dispatch.

Uses a registry pattern keyed by the closed node-type set; unknown types
fall through to a pass-through result.
"""

from functools import partial
from typing import TYPE_CHECKING, Callable, Dict

from pydantic import ValidationError

from crm_workflows.constants import UNKNOWN_NODE_TYPE, NodeType, normalize_node_type
from crm_workflows.core.logging import get_logger
from crm_workflows.models.nodes import validate_node_params
from crm_workflows.services.execution.models import NodeResult
from crm_workflows.services.handlers import (
    handle_condition,
    handle_create_task,
    handle_delay,
    handle_fetch_data,
    handle_loop,
    handle_notification,
    handle_send_email,
    handle_trigger,
    handle_update_status,
)

if TYPE_CHECKING:
    from crm_workflows.core.config import Settings
    from crm_workflows.core.store import RecordStore
    from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
    from crm_workflows.services.email import EmailSender
    from crm_workflows.services.execution.models import ExecutionContext
    from crm_workflows.services.notifier import Notifier

logger = get_logger(__name__)


class NodeExecutor:
    """Executes individual workflow nodes using registry-based dispatch."""

    def __init__(
        self,
        store: "RecordStore",
        email_sender: "EmailSender",
        notifier: "Notifier",
        settings: "Settings",
    ):
        self.store = store
        self.email_sender = email_sender
        self.notifier = notifier
        self.settings = settings
        self._handlers = self._build_handler_registry()

    def _build_handler_registry(self) -> Dict[str, Callable]:
        """Build handler registry with service dependencies bound via partial."""
        return {
            # Entry
            NodeType.TRIGGER.value: handle_trigger,
            # Actions
            NodeType.SEND_EMAIL.value: partial(handle_send_email, email_sender=self.email_sender),
            NodeType.CREATE_TASK.value: partial(handle_create_task, store=self.store),
            NodeType.NOTIFICATION.value: partial(
                handle_notification, notifier=self.notifier, settings=self.settings
            ),
            # Control
            NodeType.CONDITION.value: handle_condition,
            NodeType.DELAY.value: partial(handle_delay, settings=self.settings),
            NodeType.LOOP.value: handle_loop,
            # Data
            NodeType.FETCH_DATA.value: partial(handle_fetch_data, store=self.store, settings=self.settings),
            NodeType.UPDATE_STATUS.value: partial(handle_update_status, store=self.store),
        }

    async def execute(
        self,
        node: "WorkflowNode",
        flow: "FlowDefinition",
        context: "ExecutionContext",
    ) -> NodeResult:
        """Execute a single workflow node.

        Never raises for handler or collaborator failures: every exception is
        converted into a failed NodeResult.
        """
        node_type, raw_params = normalize_node_type(node.type, node.data)
        handler = self._handlers.get(node_type)

        if handler is None:
            logger.debug("Unknown node type, passing through", node_id=node.id, node_type=node.type)
            return NodeResult.ok(output={"node_type": node.type or UNKNOWN_NODE_TYPE, "skipped": True})

        try:
            params = validate_node_params(node_type, raw_params)
        except ValidationError as e:
            error = e.errors()[0]
            location = ".".join(str(p) for p in error.get("loc", ()))
            message = f"Invalid {node_type} parameters: {location} {error.get('msg', '')}".strip()
            logger.warning("Node parameter validation failed", node_id=node.id, error=message)
            return NodeResult.fail(message)

        try:
            return await handler(node, flow, context, params)
        except Exception as e:
            logger.error("Node execution error", node_id=node.id, node_type=node_type, error=str(e))
            return NodeResult.fail(str(e) or type(e).__name__)
