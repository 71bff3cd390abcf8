"""Centralized constants for node types, operators and events.

Single source of truth for the closed node-type set and the string
vocabularies shared by the engine, the dispatcher and the rule engine.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


# =============================================================================
# NODE TYPES
# =============================================================================

class NodeType(str, Enum):
    """Closed set of node types the engine knows how to execute."""
    TRIGGER = "trigger"
    SEND_EMAIL = "send_email"
    CREATE_TASK = "create_task"
    NOTIFICATION = "notification"
    CONDITION = "condition"
    DELAY = "delay"
    LOOP = "loop"
    FETCH_DATA = "fetch_data"
    UPDATE_STATUS = "update_status"


KNOWN_NODE_TYPES: FrozenSet[str] = frozenset(t.value for t in NodeType)

# Names the editor has used for the same node types
NODE_TYPE_ALIASES: Dict[str, str] = {
    "email": NodeType.SEND_EMAIL.value,
    "task": NodeType.CREATE_TASK.value,
    "send_notification": NodeType.NOTIFICATION.value,
}

# Generic action node: data.actionType selects the behaviour, data.config holds params
ACTION_NODE_TYPE = "action"

# Reported for nodes authored without a type
UNKNOWN_NODE_TYPE = "unknown"


def normalize_node_type(node_type: Optional[str], data: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Map alias and generic action nodes onto a canonical type and flat params.

    Args:
        node_type: Type string as authored in the flow
        data: Node data as authored in the flow

    Returns:
        Tuple of (canonical node type, parameters dict)
    """
    data = data or {}
    node_type = node_type or UNKNOWN_NODE_TYPE
    if node_type == ACTION_NODE_TYPE:
        action_type = data.get("actionType") or data.get("action_type") or ""
        params = {**data, **(data.get("config") or {})}
        return NODE_TYPE_ALIASES.get(action_type, action_type), params
    return NODE_TYPE_ALIASES.get(node_type, node_type), data


# =============================================================================
# WORKFLOW DEFINITION VOCABULARY
# =============================================================================

TRIGGER_TYPES: FrozenSet[str] = frozenset(["event", "schedule", "webhook", "manual"])

ERROR_HANDLING_STOP = "stop"
ERROR_HANDLING_CONTINUE = "continue"
ERROR_HANDLING_RETRY = "retry"

ERROR_HANDLING_POLICIES: FrozenSet[str] = frozenset([
    ERROR_HANDLING_STOP,
    ERROR_HANDLING_CONTINUE,
    ERROR_HANDLING_RETRY,
])

MANUAL_TRIGGER_EVENT = "manual"

# Condition node output ports
TRUE_HANDLE = "true"
FALSE_HANDLE = "false"


# =============================================================================
# OPERATORS
# =============================================================================

CONDITION_OPERATORS: FrozenSet[str] = frozenset([
    "equals",
    "not_equals",
    "greater_than",
    "less_than",
    "greater_than_or_equal",
    "less_than_or_equal",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "is_empty",
    "is_not_empty",
])

# Operators a fetch_data node may push down to the record store
FETCH_FILTER_OPERATORS: FrozenSet[str] = frozenset([
    "equals",
    "not_equals",
    "greater_than",
    "less_than",
])

# Operators the record store understands
STORE_FILTER_OPERATORS: FrozenSet[str] = FETCH_FILTER_OPERATORS | frozenset([
    "greater_than_or_equal",
    "less_than_or_equal",
])


# =============================================================================
# DELAY UNITS
# =============================================================================

DELAY_UNIT_MS: Dict[str, int] = {
    "seconds": 1000,
    "minutes": 60 * 1000,
    "hours": 60 * 60 * 1000,
    "days": 24 * 60 * 60 * 1000,
}


# =============================================================================
# RECORD STORE TABLES
# =============================================================================

WORKFLOW_DEFINITIONS_TABLE = "workflow_definitions"
WORKFLOW_EXECUTIONS_TABLE = "workflow_executions"
AUTOMATION_RULES_TABLE = "automation_rules"
TASKS_TABLE = "tasks"
NOTIFICATIONS_TABLE = "notifications"
COMPANY_SETTINGS_TABLE = "company_settings"

