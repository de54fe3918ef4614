"""
Pydantic schemas for goal definitions (service input, YAML loader) and API output.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from goal_engine.conditions import (
    GOAL_TYPES,
    VALUE_TYPE_DYNAMIC,
    VALUE_TYPE_FIXED,
    VALUE_TYPE_NONE,
    VALUE_TYPES,
    parse_conditions,
    parse_funnel_steps,
)
from goal_engine.exceptions import GoalDefinitionError


class GoalDefinition(BaseModel):
    """A complete, validated goal definition."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    type: str
    description: Optional[str] = None
    conditions: Dict[str, Any] = Field(default_factory=dict)
    value_type: str = VALUE_TYPE_NONE
    fixed_value: Optional[float] = None
    dynamic_value_path: Optional[str] = None
    allow_multiple: bool = False
    is_active: bool = True
    funnel_steps: Optional[List[Dict[str, Any]]] = None
    site_id: Optional[int] = None
    tenant_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "GoalDefinition":
        if self.type not in GOAL_TYPES:
            raise ValueError(f"type must be one of {list(GOAL_TYPES)}")
        if self.value_type not in VALUE_TYPES:
            raise ValueError(f"value_type must be one of {list(VALUE_TYPES)}")
        if self.value_type == VALUE_TYPE_FIXED and self.fixed_value is None:
            raise ValueError("fixed_value is required when value_type is 'fixed'")
        if self.value_type == VALUE_TYPE_DYNAMIC and not self.dynamic_value_path:
            raise ValueError("dynamic_value_path is required when value_type is 'dynamic'")
        try:
            parse_conditions(self.type, self.conditions)
            parse_funnel_steps(self.funnel_steps)
        except GoalDefinitionError as e:
            raise ValueError(str(e)) from e
        return self


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    type: str
    conditions: Dict[str, Any]
    value_type: str
    fixed_value: Optional[float] = None
    dynamic_value_path: Optional[str] = None
    allow_multiple: bool
    is_active: bool
    funnel_steps: Optional[List[Dict[str, Any]]] = None
    site_id: Optional[int] = None
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
