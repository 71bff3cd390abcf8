"""Node handlers package.

One coroutine per node type, organized by category:
- triggers.py: Trigger entry node
- actions.py: Send Email, Create Task, Notification
- control.py: Condition, Delay, Loop
- data.py: Fetch Data, Update Status

Every handler has the signature
``handler(node, flow, context, params, **services) -> NodeResult``;
service dependencies are bound by the NodeExecutor via functools.partial.
"""

from .triggers import handle_trigger
from .actions import (
    handle_send_email,
    handle_create_task,
    handle_notification,
)
from .control import (
    handle_condition,
    handle_delay,
    handle_loop,
)
from .data import (
    handle_fetch_data,
    handle_update_status,
)

__all__ = [
    "handle_trigger",
    "handle_send_email",
    "handle_create_task",
    "handle_notification",
    "handle_condition",
    "handle_delay",
    "handle_loop",
    "handle_fetch_data",
    "handle_update_status",
]
