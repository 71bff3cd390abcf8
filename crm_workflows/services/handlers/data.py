"""Data node handlers - Fetch Data, Update Status."""

from typing import TYPE_CHECKING

from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.core.store import RecordFilter
from crm_workflows.services.execution.models import NodeResult
from crm_workflows.services.parameter_resolver import resolve_value

if TYPE_CHECKING:
    from crm_workflows.core.config import Settings
    from crm_workflows.core.store import RecordStore
    from crm_workflows.models.nodes import FetchDataParams, UpdateStatusParams
    from crm_workflows.models.workflow import FlowDefinition, WorkflowNode
    from crm_workflows.services.execution.models import ExecutionContext

logger = get_logger(__name__)


async def handle_fetch_data(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "FetchDataParams",
    store: "RecordStore",
    settings: "Settings",
) -> NodeResult:
    """Read filtered rows and expose them to later nodes as ``<table>_results``.

    Args:
        node: The node being executed
        flow: Flow definition the node belongs to
        context: Execution context; receives the results variable
        params: Table and filter list
        store: Record store to read from
        settings: Provides the row cap (fetch_row_limit)

    Returns:
        NodeResult with {table, count, results}
    """
    table = params.table
    if not table:
        return NodeResult.fail("Fetch data requires a table")

    filters = [
        RecordFilter(field=f.field, operator=f.operator, value=resolve_value(f.value, context.variables))
        for f in params.filters
    ]

    try:
        results = await store.select(table, filters, limit=settings.fetch_row_limit)
    except StorageError as e:
        return NodeResult.fail(e.message)

    context.variables[f"{table}_results"] = results
    logger.debug("Fetched rows", node_id=node.id, table=table, count=len(results))

    return NodeResult.ok(output={"table": table, "count": len(results), "results": results})


async def handle_update_status(
    node: "WorkflowNode",
    flow: "FlowDefinition",
    context: "ExecutionContext",
    params: "UpdateStatusParams",
    store: "RecordStore",
) -> NodeResult:
    """Write one field on the row identified by ``entity_id``."""
    table = params.table
    field = params.field
    value = resolve_value(params.value, context.variables)
    entity_id = context.variables.get("entity_id")

    if not table or not field or not entity_id:
        return NodeResult.fail("Update status requires table, field, and entity_id")

    try:
        rows = await store.update(table, {field: value}, {"id": entity_id})
    except StorageError as e:
        return NodeResult.fail(e.message)

    return NodeResult.ok(output={
        "updated": True,
        "rows_affected": rows,
        "table": table,
        "field": field,
        "value": value,
    })
