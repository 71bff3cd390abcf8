"""Record store abstraction used by the engine for every persistent read/write.

Rows are plain dictionaries keyed by table name. ``where`` clauses are either
an equality mapping (``{"id": "..."}``) or a list of :class:`RecordFilter`.
"""

import asyncio
import copy
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from crm_workflows.constants import STORE_FILTER_OPERATORS
from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RecordFilter:
    """Single comparison applied to one field of a row."""
    field: str
    operator: str = "equals"
    value: Any = None

    def __post_init__(self):
        if self.operator not in STORE_FILTER_OPERATORS:
            raise StorageError(f"Unsupported filter operator: {self.operator}")


Where = Union[Mapping[str, Any], Sequence[RecordFilter], None]


class RecordStore(Protocol):
    """Async persistence seam for workflow, execution, task and entity rows."""

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update(self, table: str, patch: Dict[str, Any], where: Where) -> int:
        ...

    async def select(self, table: str, where: Where = None, *,
                     order_by: Optional[str] = None, descending: bool = False,
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...


# =============================================================================
# Shared filtering helpers
# =============================================================================

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    return str(uuid.uuid4())


def normalize_where(where: Where) -> List[RecordFilter]:
    """Turn an equality mapping or filter list into a filter list."""
    if where is None:
        return []
    if isinstance(where, Mapping):
        return [RecordFilter(field=k, operator="equals", value=v) for k, v in where.items()]
    return list(where)


def _compare(actual: Any, operator: str, expected: Any) -> bool:
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if actual is None or expected is None:
        return False
    try:
        if operator == "greater_than":
            return actual > expected
        if operator == "less_than":
            return actual < expected
        if operator == "greater_than_or_equal":
            return actual >= expected
        if operator == "less_than_or_equal":
            return actual <= expected
    except TypeError:
        return False
    return False


def row_matches(row: Mapping[str, Any], filters: Sequence[RecordFilter]) -> bool:
    """True when every filter holds for ``row``."""
    return all(_compare(row.get(f.field), f.operator, f.value) for f in filters)


def order_rows(rows: List[Dict[str, Any]], order_by: Optional[str],
               descending: bool) -> List[Dict[str, Any]]:
    """Stable sort on one field; rows missing the field sort last."""
    if not order_by:
        return list(reversed(rows)) if descending else rows
    present = [r for r in rows if r.get(order_by) is not None]
    missing = [r for r in rows if r.get(order_by) is None]
    try:
        present.sort(key=lambda r: r[order_by], reverse=descending)
    except TypeError:
        present.sort(key=lambda r: str(r[order_by]), reverse=descending)
    return present + missing


def prepare_insert(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``row`` and assign ``id``/``created_at`` when absent."""
    record = copy.deepcopy(dict(row))
    record.setdefault("id", new_record_id())
    record.setdefault("created_at", utc_now_iso())
    return record


# =============================================================================
# In-memory implementation
# =============================================================================

class MemoryRecordStore:
    """Process-local store. Rows are deep-copied in and out."""

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        for table, rows in (seed or {}).items():
            self._tables[table] = [prepare_insert(r) for r in rows]

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Snapshot of a table, for inspection."""
        return copy.deepcopy(self._tables.get(table, []))

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        record = prepare_insert(row)
        async with self._lock:
            self._tables.setdefault(table, []).append(record)
        return copy.deepcopy(record)

    async def update(self, table: str, patch: Dict[str, Any], where: Where) -> int:
        filters = normalize_where(where)
        count = 0
        async with self._lock:
            for row in self._tables.get(table, []):
                if row_matches(row, filters):
                    row.update(copy.deepcopy(patch))
                    count += 1
        return count

    async def select(self, table: str, where: Where = None, *,
                     order_by: Optional[str] = None, descending: bool = False,
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        filters = normalize_where(where)
        async with self._lock:
            matched = [copy.deepcopy(r) for r in self._tables.get(table, [])
                       if row_matches(r, filters)]
        matched = order_rows(matched, order_by, descending)
        if limit is not None:
            matched = matched[:limit]
        return matched
