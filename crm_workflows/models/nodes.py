"""Pydantic models for node parameter validation with discriminated unions.

Each node type in the closed set has a parameter model selected by the
``type`` discriminator. Unknown types fall back to :class:`BaseNodeParams`
so flows authored against newer editors still load.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from crm_workflows.constants import KNOWN_NODE_TYPES


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseNodeParams(BaseModel):
    """Base class for all node parameters."""
    model_config = {"extra": "allow", "populate_by_name": True}

    type: str

    @model_validator(mode="before")
    @classmethod
    def null_means_default(cls, data):
        """Treat an explicit null as absent for every field that has a default."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, info in cls.model_fields.items():
            if info.is_required() or info.default is None:
                continue
            for key in (name, info.alias):
                if key and key in data and data[key] is None:
                    del data[key]
        return data


# =============================================================================
# TRIGGER & ACTION NODE MODELS
# =============================================================================

class TriggerParams(BaseNodeParams):
    """Parameters for the entry node of a flow."""
    type: Literal["trigger"]
    label: Optional[str] = None


class SendEmailParams(BaseNodeParams):
    """Parameters for the send_email node. All fields accept {{templates}}."""
    type: Literal["send_email"]
    to: Optional[str] = ""
    subject: Optional[str] = ""
    body: Optional[str] = Field(default="", alias="message")


class CreateTaskParams(BaseNodeParams):
    """Parameters for the create_task node."""
    type: Literal["create_task"]
    title: Optional[str] = ""
    description: Optional[str] = ""
    priority: str = "medium"
    due_offset_days: int = Field(default=1, alias="dueOffsetDays")
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")


class NotificationParams(BaseNodeParams):
    """Parameters for the notification node."""
    type: Literal["notification"]
    title: Optional[str] = ""
    message: Optional[str] = ""
    notification_type: str = Field(default="info", alias="notificationType")


# =============================================================================
# CONTROL NODE MODELS
# =============================================================================

class ConditionParams(BaseNodeParams):
    """Parameters for the condition node (field/operator/value predicate)."""
    type: Literal["condition"]
    field: Any = ""
    operator: str = "equals"
    value: Any = None


class DelayParams(BaseNodeParams):
    """Parameters for the delay node. Unparseable values degrade to no delay."""
    type: Literal["delay"]
    delay_value: Any = Field(default=1, alias="delayValue")
    delay_unit: str = Field(default="minutes", alias="delayUnit")


class LoopParams(BaseNodeParams):
    """Parameters for the loop node."""
    type: Literal["loop"]
    array_source: str = Field(default="", alias="arraySource")
    item_variable: str = Field(default="item", alias="itemVariable")


# =============================================================================
# DATA NODE MODELS
# =============================================================================

class FetchFilter(BaseModel):
    """Single fetch_data filter."""
    field: str
    operator: Literal["equals", "not_equals", "greater_than", "less_than"] = "equals"
    value: Any = None


class FetchDataParams(BaseNodeParams):
    """Parameters for the fetch_data node."""
    type: Literal["fetch_data"]
    table: Optional[str] = ""
    filters: List[FetchFilter] = Field(default_factory=list)


class UpdateStatusParams(BaseNodeParams):
    """Parameters for the update_status node."""
    type: Literal["update_status"]
    table: Optional[str] = ""
    field: Optional[str] = ""
    value: Any = None


# =============================================================================
# DISCRIMINATED UNION
# =============================================================================

KnownNodeParams = Annotated[
    Union[
        TriggerParams,
        SendEmailParams,
        CreateTaskParams,
        NotificationParams,
        ConditionParams,
        DelayParams,
        LoopParams,
        FetchDataParams,
        UpdateStatusParams,
    ],
    Field(discriminator="type")
]

# Created once at module level
_known_node_adapter = TypeAdapter(KnownNodeParams)


def validate_node_params(node_type: str, params: Dict[str, Any]) -> BaseNodeParams:
    """Validate node parameters using the appropriate model.

    For known node types, validation errors are raised.
    For unknown node types, falls back to BaseNodeParams.

    Args:
        node_type: The canonical node type string
        params: The parameters dictionary

    Returns:
        Validated parameters model (specific subclass based on node_type)

    Raises:
        ValidationError: If validation fails for a known node type
    """
    params_with_type = {**(params or {}), "type": node_type}

    if node_type in KNOWN_NODE_TYPES:
        return _known_node_adapter.validate_python(params_with_type)
    return BaseNodeParams(**params_with_type)
