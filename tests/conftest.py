"""Shared pytest fixtures for the workflow engine test suite.

Provides:
- Settings with a near-zero delay cap
- In-memory record store
- Recording email sender (no HTTP)
- Fully wired engine objects (node executor, coordinator, dispatcher,
  rule engine, execution service)
- Factories for flows and workflow definitions
"""

from typing import Any, Dict, List, Optional

import pytest

from crm_workflows.core.config import Settings
from crm_workflows.core.exceptions import EmailDeliveryError
from crm_workflows.core.store import MemoryRecordStore
from crm_workflows.models.workflow import WorkflowDefinition
from crm_workflows.services.automation import RuleEngine
from crm_workflows.services.dispatcher import TriggerDispatcher
from crm_workflows.services.execution.executor import WorkflowExecutor
from crm_workflows.services.executions import ExecutionService
from crm_workflows.services.node_executor import NodeExecutor
from crm_workflows.services.notifier import Notifier


class RecordingEmailSender:
    """Stands in for EmailSender; keeps every message instead of posting it."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail_with: Optional[str] = None

    async def send(self, to: str, subject: str, body: str = "") -> Optional[str]:
        if self.fail_with:
            raise EmailDeliveryError(self.fail_with)
        self.sent.append({"to": to, "subject": subject, "body": body})
        return f"msg-{len(self.sent)}"


# ---------------------------------------------------------------------------
# Configuration & collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        max_delay_seconds=0.01,
        default_actor_id="user-default",
        log_format="console",
    )


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def notifier(store) -> Notifier:
    return Notifier(store)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@pytest.fixture
def node_executor(store, email_sender, notifier, settings) -> NodeExecutor:
    return NodeExecutor(store=store, email_sender=email_sender, notifier=notifier, settings=settings)


@pytest.fixture
def executor(store, node_executor) -> WorkflowExecutor:
    return WorkflowExecutor(store=store, node_executor=node_executor)


@pytest.fixture
def dispatcher(store, executor) -> TriggerDispatcher:
    return TriggerDispatcher(store=store, executor=executor)


@pytest.fixture
def rule_engine(store, node_executor) -> RuleEngine:
    return RuleEngine(store=store, node_executor=node_executor)


@pytest.fixture
def execution_service(store, executor, settings) -> ExecutionService:
    return ExecutionService(store=store, executor=executor, settings=settings)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_flow():
    """Build a flow dict from (id, type, data) tuples and (source, target[, handle]) tuples."""
    def _make(nodes, edges=()):
        return {
            "nodes": [{"id": n[0], "type": n[1], "data": n[2] if len(n) > 2 else {}} for n in nodes],
            "edges": [
                {"id": f"e-{e[0]}-{e[1]}", "source": e[0], "target": e[1],
                 "sourceHandle": e[2] if len(e) > 2 else None}
                for e in edges
            ],
        }
    return _make


@pytest.fixture
def make_definition():
    """Build a WorkflowDefinition bound to ``lead_created`` by default."""
    def _make(flow: Dict[str, Any], **overrides) -> WorkflowDefinition:
        data = {
            "id": "wf-1",
            "name": "Test workflow",
            "trigger_type": "event",
            "trigger_config": {"event": "lead_created"},
            "flow_definition": flow,
            "is_active": True,
            "error_handling": "stop",
            "max_retries": 3,
        }
        data.update(overrides)
        return WorkflowDefinition.model_validate(data)
    return _make
