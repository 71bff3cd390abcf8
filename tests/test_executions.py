"""Tests for execution administration."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from crm_workflows.core.exceptions import (
    DefinitionError,
    ExecutionNotFoundError,
    RetryLimitExceededError,
)


@pytest_asyncio.fixture
async def stored_definition(store, make_flow):
    row = {
        "id": "wf-1",
        "name": "Welcome",
        "trigger_type": "event",
        "trigger_config": {"event": "lead_created"},
        "flow_definition": make_flow([("1", "trigger"), ("2", "create_task", {"title": "Call {{name}}"})],
                                     [("1", "2")]),
        "is_active": True,
        "error_handling": "stop",
        "max_retries": 2,
    }
    await store.insert("workflow_definitions", row)
    return row


def _iso(days_ago=0):
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat()


@pytest.mark.unit
class TestExecutionQueries:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, execution_service, store):
        await store.insert("workflow_executions", {"id": "old", "workflow_id": "wf-1", "started_at": _iso(2)})
        await store.insert("workflow_executions", {"id": "new", "workflow_id": "wf-1", "started_at": _iso(0)})
        await store.insert("workflow_executions", {"id": "other", "workflow_id": "wf-2", "started_at": _iso(1)})

        assert [r["id"] for r in await execution_service.list_executions()] == ["new", "other", "old"]
        assert [r["id"] for r in await execution_service.list_executions("wf-1")] == ["new", "old"]
        assert len(await execution_service.list_executions(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_get_missing_execution(self, execution_service):
        with pytest.raises(ExecutionNotFoundError):
            await execution_service.get_execution("nope")


@pytest.mark.unit
class TestCancel:

    @pytest.mark.asyncio
    async def test_cancel_running(self, execution_service, store):
        await store.insert("workflow_executions", {"id": "E1", "status": "running"})
        assert await execution_service.cancel_execution("E1") is True
        row = await execution_service.get_execution("E1")
        assert row["status"] == "cancelled"
        assert row["completed_at"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["completed", "failed", "cancelled"])
    async def test_cancel_terminal_is_noop(self, execution_service, store, status):
        await store.insert("workflow_executions", {"id": "E1", "status": status, "completed_at": "then"})
        assert await execution_service.cancel_execution("E1") is False
        row = await execution_service.get_execution("E1")
        assert (row["status"], row["completed_at"]) == (status, "then")

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, execution_service):
        with pytest.raises(ExecutionNotFoundError):
            await execution_service.cancel_execution("nope")


@pytest.mark.unit
class TestRetryAndManual:

    @pytest.mark.asyncio
    async def test_retry_creates_new_execution(self, execution_service, store, stored_definition):
        first = await execution_service.start_manual("wf-1", {"name": "Dana"})
        retried = await execution_service.retry_execution(first.execution_id)

        assert retried.success
        assert retried.execution_id != first.execution_id
        row = await execution_service.get_execution(retried.execution_id)
        assert row["retry_count"] == 1
        assert row["trigger_event"] == "manual"
        assert row["trigger_data"] == {"name": "Dana"}
        assert [t["title"] for t in store.rows("tasks")] == ["Call Dana", "Call Dana"]

    @pytest.mark.asyncio
    async def test_retry_limit(self, execution_service, store, stored_definition):
        await store.insert("workflow_executions", {
            "id": "E1", "workflow_id": "wf-1", "trigger_event": "lead_created",
            "trigger_data": {}, "status": "failed", "retry_count": 2,
        })
        with pytest.raises(RetryLimitExceededError):
            await execution_service.retry_execution("E1")

    @pytest.mark.asyncio
    async def test_manual_start_of_unknown_workflow(self, execution_service):
        with pytest.raises(DefinitionError):
            await execution_service.start_manual("missing")


@pytest.mark.unit
class TestStats:

    @pytest.mark.asyncio
    async def test_stats_window_and_figures(self, execution_service, store):
        rows = [
            {"status": "completed", "duration_ms": 100, "started_at": _iso(1)},
            {"status": "completed", "duration_ms": 300, "started_at": _iso(2)},
            {"status": "failed", "duration_ms": 51, "started_at": _iso(3)},
            {"status": "running", "started_at": _iso(0)},
            {"status": "completed", "duration_ms": 999, "started_at": _iso(45)},
        ]
        for row in rows:
            await store.insert("workflow_executions", {"workflow_id": "wf-1", **row})

        stats = await execution_service.execution_stats()

        assert stats.total == 4
        assert (stats.completed, stats.failed, stats.running) == (2, 1, 1)
        assert stats.success_rate == 50.0
        assert stats.avg_duration_ms == 150

    @pytest.mark.asyncio
    async def test_stats_empty(self, execution_service):
        stats = await execution_service.execution_stats("wf-none")
        assert stats.to_dict() == {
            "total": 0, "completed": 0, "failed": 0, "running": 0,
            "success_rate": 0.0, "avg_duration_ms": 0,
        }
