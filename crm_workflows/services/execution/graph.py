"""Graph walker: successor and start-node resolution over a flow definition."""

from typing import Iterable, List, Optional

from crm_workflows.constants import NodeType
from crm_workflows.models.workflow import FlowDefinition, WorkflowNode


def start_nodes(flow: FlowDefinition) -> List[WorkflowNode]:
    """All trigger nodes, else the first node, else nothing."""
    triggers = [n for n in flow.nodes if n.type == NodeType.TRIGGER.value]
    if triggers:
        return triggers
    return flow.nodes[:1]


def _nodes_by_ids(flow: FlowDefinition, node_ids: Iterable[str]) -> List[WorkflowNode]:
    wanted = set(node_ids)
    return [n for n in flow.nodes if n.id in wanted]


def next_nodes(current_node_id: str, flow: FlowDefinition,
               explicit_next_ids: Optional[List[str]] = None) -> List[WorkflowNode]:
    """Nodes to run after ``current_node_id``.

    Args:
        current_node_id: Node that just executed
        flow: Flow definition
        explicit_next_ids: Ids chosen by a branching node. None follows every
            outgoing edge; an empty list means no successors.

    Returns:
        Successor nodes in flow node-list order. Edges to ids that are not
        in the node list are ignored.
    """
    if explicit_next_ids is not None:
        return _nodes_by_ids(flow, explicit_next_ids)
    return _nodes_by_ids(flow, (e.target for e in flow.outgoing(current_node_id)))
