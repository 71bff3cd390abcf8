"""Automation Rule Engine - flat event-to-action rules.

Each rule action is turned into a one-node flow and run through the same
NodeExecutor, condition evaluator and variable resolver as graph
workflows. Rule failures are logged and never propagate to the caller.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import ValidationError

from crm_workflows.constants import AUTOMATION_RULES_TABLE, NodeType
from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.models.automation import AutomationRule
from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
from crm_workflows.services.dispatcher import compose_trigger_payload
from crm_workflows.services.execution.conditions import evaluate_condition
from crm_workflows.services.execution.models import ExecutionContext, utc_now
from crm_workflows.services.parameter_resolver import convert_legacy_template, get_nested_value

if TYPE_CHECKING:
    from crm_workflows.core.store import RecordStore
    from crm_workflows.services.node_executor import NodeExecutor

logger = get_logger(__name__)

# Shorthand paths accepted in rule templates
LEGACY_TEMPLATE_ALIASES: Dict[str, str] = {
    "deal.value": "deal.deal_value",
    "quotation.number": "quotation.quote_number",
    "invoice.number": "invoice.invoice_number",
}

DEFAULT_EMAIL_BODY = "This is an automated message."

# entity key in the event data -> (table, field) written by update_status
STATUS_TARGETS = (
    ("lead", "leads", "status"),
    ("deal", "deals", "stage"),
)


def _template(value: Optional[str]) -> Optional[str]:
    return convert_legacy_template(value, LEGACY_TEMPLATE_ALIASES)


class RuleEngine:
    """Runs automation rules for CRM events."""

    def __init__(self, store: "RecordStore", node_executor: "NodeExecutor"):
        self.store = store
        self.node_executor = node_executor

    async def matching_rules(self, event: str) -> List[AutomationRule]:
        try:
            rows = await self.store.select(
                AUTOMATION_RULES_TABLE, {"trigger_event": event, "is_active": True}
            )
        except StorageError as e:
            logger.error("Failed to fetch automation rules", event_name=event, error=e.message)
            return []

        rules = []
        for row in rows:
            try:
                rules.append(AutomationRule.from_record(row))
            except ValidationError as e:
                logger.warning("Skipping invalid automation rule", rule_id=row.get("id"), error=str(e))
        return rules

    def conditions_met(self, rule: AutomationRule, variables: Dict[str, Any]) -> bool:
        """Every trigger condition must hold.

        A plain value means ``equals``; a mapping may name its own operator.
        """
        for field, expected in (rule.trigger_conditions or {}).items():
            operator = "equals"
            if isinstance(expected, dict):
                operator = expected.get("operator", "equals")
                expected = expected.get("value")
            if not evaluate_condition(field, operator, expected, variables):
                return False
        return True

    def build_node(self, rule: AutomationRule, variables: Dict[str, Any]) -> Optional[WorkflowNode]:
        """Synthetic node for the rule's action, or None if it cannot run.

        ``variables`` may be adjusted for the node (e.g. the update target id).
        """
        action = rule.actions
        node_id = f"rule-{rule.id}"

        if action.type == "send_email":
            if get_nested_value(variables, "lead.email"):
                to = "{{lead.email}}"
            elif get_nested_value(variables, "user.email"):
                to = "{{user.email}}"
            else:
                logger.warning("No recipient email found for rule", rule_id=rule.id, rule=rule.name)
                return None
            return WorkflowNode(id=node_id, type=NodeType.SEND_EMAIL.value, data={
                "to": to,
                "subject": f"Automation: {rule.name}",
                "body": _template(action.value) or DEFAULT_EMAIL_BODY,
            })

        if action.type == "create_task":
            return WorkflowNode(id=node_id, type=NodeType.CREATE_TASK.value, data={
                "title": _template(action.value) or f"Follow up: {rule.name}",
                "description": f"Auto-created by automation rule: {rule.name}",
                "priority": "medium",
                "due_offset_days": 3,
            })

        if action.type in ("send_notification", NodeType.NOTIFICATION.value):
            user_id = get_nested_value(variables, "user.id")
            if user_id and not variables.get("actor_id"):
                variables["actor_id"] = user_id
            return WorkflowNode(id=node_id, type=NodeType.NOTIFICATION.value, data={
                "title": rule.name,
                "message": _template(action.value) or f"Automation triggered: {rule.name}",
            })

        if action.type == "update_status":
            if not action.value:
                logger.warning("No status value provided for update_status action", rule_id=rule.id)
                return None
            for entity_key, table, field in STATUS_TARGETS:
                target_id = get_nested_value(variables, f"{entity_key}.id")
                if target_id:
                    variables["entity_id"] = target_id
                    return WorkflowNode(id=node_id, type=NodeType.UPDATE_STATUS.value, data={
                        "table": table,
                        "field": field,
                        "value": _template(action.value),
                    })
            logger.warning("No lead or deal to update", rule_id=rule.id)
            return None

        logger.warning("Unknown action type", rule_id=rule.id, action_type=action.type)
        return None

    async def run_rule(self, rule: AutomationRule, event: str,
                       payload: Dict[str, Any]) -> bool:
        """Run one rule's action. True when the action succeeded."""
        context = ExecutionContext.create(
            workflow_id=rule.id,
            execution_id=f"rule-{rule.id}",
            trigger_event=event,
            trigger_data=payload,
            workflow_name=rule.name,
        )
        if not self.conditions_met(rule, context.variables):
            logger.debug("Rule conditions not met", rule_id=rule.id)
            return False

        node = self.build_node(rule, context.variables)
        if node is None:
            return False

        result = await self.node_executor.execute(node, FlowDefinition(nodes=[node]), context)
        if not result.success:
            logger.warning("Rule action failed", rule_id=rule.id, rule=rule.name, error=result.error)
            return False

        await self._track_execution(rule)
        return True

    async def _track_execution(self, rule: AutomationRule) -> None:
        try:
            await self.store.update(
                AUTOMATION_RULES_TABLE,
                {
                    "execution_count": rule.execution_count + 1,
                    "last_executed_at": utc_now().isoformat(),
                },
                {"id": rule.id},
            )
        except StorageError as e:
            logger.error("Error updating rule execution count", rule_id=rule.id, error=e.message)

    async def handle_event(self, event: str, entity_type: str, entity_id: str,
                           data: Optional[Dict[str, Any]] = None) -> int:
        """Run every active rule for ``event``.

        Returns:
            Number of rules whose action succeeded
        """
        rules = await self.matching_rules(event)
        if not rules:
            logger.debug("No active automation rules for event", event_name=event)
            return 0

        logger.info("Running automation rules", event_name=event, entity_type=entity_type,
                    entity_id=entity_id, rules=len(rules))

        payload = compose_trigger_payload(entity_type, entity_id, data)
        executed = 0
        for rule in rules:
            try:
                if await self.run_rule(rule, event, payload):
                    executed += 1
            except Exception as e:
                logger.error("Error running automation rule", rule_id=rule.id, error=str(e))

        logger.info("Automation processing complete", event_name=event, executed=executed)
        return executed
