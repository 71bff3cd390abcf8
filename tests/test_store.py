"""Tests for the in-memory record store and shared filtering."""

import pytest

from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.store import MemoryRecordStore, RecordFilter


@pytest.mark.unit
class TestMemoryRecordStore:

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_created_at(self, store):
        row = await store.insert("leads", {"company_name": "Acme"})
        assert row["id"]
        assert row["created_at"]
        assert row["company_name"] == "Acme"

    @pytest.mark.asyncio
    async def test_insert_keeps_given_id(self, store):
        row = await store.insert("leads", {"id": "L1"})
        assert row["id"] == "L1"

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self, store):
        row = await store.insert("leads", {"id": "L1", "tags": ["a"]})
        row["tags"].append("b")
        fetched = await store.select("leads", {"id": "L1"})
        assert fetched[0]["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_select_with_mapping_where(self, store):
        await store.insert("deals", {"id": "D1", "stage": "won"})
        await store.insert("deals", {"id": "D2", "stage": "lost"})
        rows = await store.select("deals", {"stage": "won"})
        assert [r["id"] for r in rows] == ["D1"]

    @pytest.mark.asyncio
    async def test_select_with_filters(self, store):
        for i, value in enumerate([100, 250, 400]):
            await store.insert("deals", {"id": f"D{i}", "deal_value": value})
        rows = await store.select("deals", [
            RecordFilter("deal_value", "greater_than", 100),
            RecordFilter("deal_value", "less_than_or_equal", 400),
        ])
        assert [r["id"] for r in rows] == ["D1", "D2"]

    @pytest.mark.asyncio
    async def test_incomparable_values_do_not_match(self, store):
        await store.insert("deals", {"id": "D1", "deal_value": "n/a"})
        rows = await store.select("deals", [RecordFilter("deal_value", "greater_than", 10)])
        assert rows == []

    @pytest.mark.asyncio
    async def test_order_and_limit(self, store):
        await store.insert("executions", {"id": "a", "started_at": "2024-01-01"})
        await store.insert("executions", {"id": "b", "started_at": "2024-03-01"})
        await store.insert("executions", {"id": "c", "started_at": "2024-02-01"})
        rows = await store.select("executions", order_by="started_at", descending=True, limit=2)
        assert [r["id"] for r in rows] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_update_returns_rows_touched(self, store):
        await store.insert("leads", {"id": "L1", "status": "new"})
        await store.insert("leads", {"id": "L2", "status": "new"})
        assert await store.update("leads", {"status": "qualified"}, {"id": "L1"}) == 1
        assert await store.update("leads", {"status": "x"}, {"id": "missing"}) == 0
        rows = await store.select("leads", {"status": "qualified"})
        assert [r["id"] for r in rows] == ["L1"]

    @pytest.mark.asyncio
    async def test_unknown_table_is_empty(self, store):
        assert await store.select("nothing") == []

    def test_seeded_rows(self):
        seeded = MemoryRecordStore({"leads": [{"id": "L1"}]})
        assert seeded.rows("leads")[0]["id"] == "L1"

    def test_unsupported_filter_operator(self):
        with pytest.raises(StorageError):
            RecordFilter("a", "contains", "x")
