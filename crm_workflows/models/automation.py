"""Pydantic models for flat automation rules."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class RuleAction(BaseModel):
    """Single action of a rule; ``value`` is a legacy single-brace template."""
    model_config = {"extra": "allow"}

    type: str
    value: Optional[str] = None


class AutomationRule(BaseModel):
    """Flat trigger-event to action rule."""

    id: str
    name: str = ""
    trigger_event: str
    trigger_conditions: Optional[Dict[str, Any]] = None
    actions: RuleAction
    is_active: bool = True
    execution_count: int = 0
    last_executed_at: Optional[str] = None

    @field_validator("execution_count", mode="before")
    @classmethod
    def none_count_is_zero(cls, v):
        return v or 0

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "AutomationRule":
        return cls.model_validate({k: v for k, v in row.items() if k in cls.model_fields})
