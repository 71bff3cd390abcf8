"""Pydantic models for workflow definitions and persisted executions."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from crm_workflows.constants import (
    ERROR_HANDLING_POLICIES,
    ERROR_HANDLING_STOP,
    TRIGGER_TYPES,
)
from crm_workflows.core.exceptions import DefinitionError


# =============================================================================
# FLOW GRAPH
# =============================================================================

class WorkflowNode(BaseModel):
    """One unit of work in a flow."""
    model_config = {"extra": "allow"}

    id: str
    type: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Dict[str, float]] = None

    @field_validator("data", mode="before")
    @classmethod
    def none_data_is_empty(cls, v):
        return v if v is not None else {}


class WorkflowEdge(BaseModel):
    """Directed connection between two nodes, optionally tagged with an output port."""
    model_config = {"extra": "allow", "populate_by_name": True}

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")


class FlowDefinition(BaseModel):
    """Node and edge graph authored for one workflow."""

    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)

    def node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> List[WorkflowEdge]:
        return [e for e in self.edges if e.source == node_id]


# =============================================================================
# DEFINITION
# =============================================================================

class TriggerCondition(BaseModel):
    """Extra AND-combined predicate on the trigger payload."""
    field: str
    operator: str = "equals"
    value: Any = None


class TriggerConfig(BaseModel):
    model_config = {"extra": "allow"}

    event: Optional[str] = None
    conditions: List[TriggerCondition] = Field(default_factory=list)


class WorkflowDefinition(BaseModel):
    """A user-authored workflow, read-only to the engine at run time."""

    id: str
    name: str = ""
    description: Optional[str] = None
    trigger_type: str = "event"
    trigger_config: TriggerConfig = Field(default_factory=TriggerConfig)
    flow_definition: FlowDefinition = Field(default_factory=FlowDefinition)
    is_active: bool = True
    error_handling: str = ERROR_HANDLING_STOP
    max_retries: int = Field(default=3, ge=0)
    tags: List[str] = Field(default_factory=list)

    @field_validator("trigger_type")
    @classmethod
    def validate_trigger_type(cls, v):
        if v not in TRIGGER_TYPES:
            raise ValueError(f"Unknown trigger type: {v}")
        return v

    @field_validator("error_handling", mode="before")
    @classmethod
    def default_error_handling(cls, v):
        if v is None:
            return ERROR_HANDLING_STOP
        if v not in ERROR_HANDLING_POLICIES:
            raise ValueError(f"Unknown error handling policy: {v}")
        return v

    @field_validator("trigger_config", "flow_definition", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return v if v is not None else {}

    @model_validator(mode="after")
    def event_trigger_requires_event(self):
        if self.trigger_type == "event" and not self.trigger_config.event:
            raise ValueError(
                f"Workflow '{self.id}' is event-triggered but has no trigger_config.event"
            )
        return self

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "WorkflowDefinition":
        """Load a definition from a stored row, ignoring storage-only columns.

        Raises:
            DefinitionError: If the row does not describe a valid definition
        """
        fields = {k: v for k, v in row.items() if k in cls.model_fields}
        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            raise DefinitionError(
                f"Invalid workflow definition '{row.get('id')}': {e.errors()[0]['msg']}"
            ) from e

