"""Action node handlers - Send Email, Create Task, Notification."""

from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from crm_workflows.constants import TASKS_TABLE
from crm_workflows.core.exceptions import EmailDeliveryError, NotificationError, StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.services.execution.models import NodeResult, utc_now
from crm_workflows.services.parameter_resolver import resolve_variables

if TYPE_CHECKING:
    from crm_workflows.core.config import Settings
    from crm_workflows.core.store import RecordStore
    from crm_workflows.models.nodes import CreateTaskParams, NotificationParams, SendEmailParams
    from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
    from crm_workflows.services.email import EmailSender
    from crm_workflows.services.execution.models import ExecutionContext
    from crm_workflows.services.notifier import Notifier

logger = get_logger(__name__)


async def handle_send_email(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "SendEmailParams",
    email_sender: "EmailSender",
) -> NodeResult:
    """Handle send_email node execution.

    Args:
        node: The node being executed
        flow: Flow definition the node belongs to
        context: Execution context (variables for template resolution)
        params: Validated email parameters
        email_sender: Email collaborator

    Returns:
        NodeResult with {sent, to, subject, message_id}
    """
    variables = context.variables
    to = resolve_variables(params.to, variables)
    subject = resolve_variables(params.subject, variables)
    body = resolve_variables(params.body, variables) or ""

    if not to or not subject:
        return NodeResult.fail("Email requires to and subject")

    try:
        message_id = await email_sender.send(to, subject, body)
    except EmailDeliveryError as e:
        return NodeResult.fail(e.message, output={"sent": False, "to": to, "subject": subject})

    return NodeResult.ok(output={"sent": True, "to": to, "subject": subject, "message_id": message_id})


async def handle_create_task(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "CreateTaskParams",
    store: "RecordStore",
) -> NodeResult:
    """Create a task scoped to the triggering entity, due ``due_offset_days`` from now."""
    variables = context.variables
    title = resolve_variables(params.title, variables)
    if not title:
        return NodeResult.fail("Task requires a title")

    due_date = utc_now() + timedelta(days=params.due_offset_days)
    row = {
        "title": title,
        "description": resolve_variables(params.description, variables) or "",
        "priority": params.priority or "medium",
        "due_date": due_date.isoformat(),
        "status": "pending",
        "entity_type": variables.get("entity_type"),
        "entity_id": variables.get("entity_id"),
        "assigned_to": resolve_variables(params.assigned_to, variables),
        "workflow_execution_id": context.execution_id,
    }

    try:
        created = await store.insert(TASKS_TABLE, row)
    except StorageError as e:
        return NodeResult.fail(e.message)

    return NodeResult.ok(output={
        "created": True,
        "task_id": created.get("id"),
        "title": title,
        "priority": row["priority"],
        "due_date": row["due_date"],
    })


def resolve_actor_id(context: "ExecutionContext", settings: "Settings") -> Optional[str]:
    """actor_id, then user_id from the variables, then the configured default."""
    variables = context.variables
    return variables.get("actor_id") or variables.get("user_id") or settings.default_actor_id


async def handle_notification(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "NotificationParams",
    notifier: "Notifier",
    settings: "Settings",
) -> NodeResult:
    """Notify the current actor."""
    variables = context.variables
    title = resolve_variables(params.title, variables)
    message = resolve_variables(params.message, variables) or ""
    if not title:
        return NodeResult.fail("Notification requires a title")

    try:
        created = await notifier.notify(
            resolve_actor_id(context, settings),
            title,
            message,
            type=params.notification_type,
            entity_type=variables.get("entity_type"),
            entity_id=variables.get("entity_id"),
        )
    except NotificationError as e:
        return NodeResult.fail(e.message, output={"sent": False, "title": title})

    return NodeResult.ok(output={"sent": True, "title": title, "notification_id": created.get("id")})
