"""Tests for event-to-workflow dispatch."""

import pytest

from crm_workflows.core.exceptions import StorageError
from crm_workflows.services.dispatcher import TriggerDispatcher, compose_trigger_payload


def _definition_row(workflow_id, event, flow, **overrides):
    row = {
        "id": workflow_id,
        "name": workflow_id,
        "trigger_type": "event",
        "trigger_config": {"event": event},
        "flow_definition": flow,
        "is_active": True,
        "error_handling": "stop",
        "max_retries": 3,
    }
    row.update(overrides)
    return row


@pytest.fixture
def simple_flow(make_flow):
    return make_flow([("1", "trigger"), ("2", "create_task", {"title": "Follow up {{lead.company_name}}"})],
                     [("1", "2")])


@pytest.mark.unit
class TestComposePayload:

    def test_payload_shape(self):
        payload = compose_trigger_payload("lead", "L1", {"company_name": "Acme"})
        assert payload == {
            "entity_type": "lead",
            "entity_id": "L1",
            "lead": {"company_name": "Acme"},
            "company_name": "Acme",
        }


@pytest.mark.unit
class TestTriggerDispatcher:

    @pytest.mark.asyncio
    async def test_only_matching_definitions_run(self, dispatcher, store, simple_flow):
        await store.insert("workflow_definitions", _definition_row("wf-a", "lead_created", simple_flow))
        await store.insert("workflow_definitions", _definition_row("wf-b", "lead_created", simple_flow))
        await store.insert("workflow_definitions", _definition_row("wf-c", "deal_won", simple_flow))

        results = await dispatcher.trigger("lead_created", "lead", "L1", {"company_name": "Acme"})

        assert len(results) == 2
        assert all(r.success for r in results)
        executions = store.rows("workflow_executions")
        assert len(executions) == 2
        assert {e["workflow_id"] for e in executions} == {"wf-a", "wf-b"}
        assert [t["title"] for t in store.rows("tasks")] == ["Follow up Acme", "Follow up Acme"]

    @pytest.mark.asyncio
    async def test_inactive_and_non_event_definitions_ignored(self, dispatcher, store, simple_flow):
        await store.insert("workflow_definitions",
                           _definition_row("wf-off", "lead_created", simple_flow, is_active=False))
        await store.insert("workflow_definitions",
                           _definition_row("wf-manual", "lead_created", simple_flow, trigger_type="manual"))
        assert await dispatcher.trigger("lead_created", "lead", "L1", {}) == []
        assert store.rows("workflow_executions") == []

    @pytest.mark.asyncio
    async def test_no_match_is_a_noop(self, dispatcher, store):
        assert await dispatcher.trigger("invoice_paid", "invoice", "I1", {}) == []

    @pytest.mark.asyncio
    async def test_trigger_conditions_filter_runs(self, dispatcher, store, simple_flow):
        conditions = {"event": "lead_created",
                      "conditions": [{"field": "lead.source", "operator": "equals", "value": "web"}]}
        await store.insert("workflow_definitions",
                           _definition_row("wf-web", "lead_created", simple_flow, trigger_config=conditions))

        assert await dispatcher.trigger("lead_created", "lead", "L1", {"source": "email"}) == []
        results = await dispatcher.trigger("lead_created", "lead", "L2", {"source": "web"})
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_failure_in_one_run_does_not_affect_another(self, dispatcher, store, make_flow, simple_flow):
        broken = make_flow([("1", "trigger"), ("2", "send_email", {})], [("1", "2")])
        await store.insert("workflow_definitions", _definition_row("wf-broken", "deal_won", broken))
        await store.insert("workflow_definitions", _definition_row("wf-ok", "deal_won", simple_flow))

        results = await dispatcher.trigger("deal_won", "deal", "D1", {})

        by_status = {e["workflow_id"]: e["status"] for e in store.rows("workflow_executions")}
        assert by_status == {"wf-broken": "failed", "wf-ok": "completed"}
        assert sorted(r.success for r in results) == [False, True]

    @pytest.mark.asyncio
    async def test_invalid_definition_skipped(self, dispatcher, store, simple_flow):
        await store.insert("workflow_definitions",
                           _definition_row("wf-bad", "lead_created", simple_flow, error_handling="explode"))
        await store.insert("workflow_definitions", _definition_row("wf-good", "lead_created", simple_flow))
        results = await dispatcher.trigger("lead_created", "lead", "L1", {})
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_store_error_degrades_to_no_runs(self, executor):
        class DownStore:
            async def select(self, table, where=None, **kwargs):
                raise StorageError("connection refused")

        dispatcher = TriggerDispatcher(DownStore(), executor)
        assert await dispatcher.trigger("lead_created", "lead", "L1", {}) == []

    @pytest.mark.asyncio
    async def test_dispatch_is_fire_and_forget(self, dispatcher, store, simple_flow):
        await store.insert("workflow_definitions", _definition_row("wf-a", "lead_created", simple_flow))

        task = dispatcher.dispatch("lead_created", "lead", "L1", {"company_name": "Acme"})
        assert dispatcher.pending == 1
        await dispatcher.drain()

        assert task.done()
        assert len(task.result()) == 1
        assert dispatcher.pending == 0
        assert len(store.rows("workflow_executions")) == 1
