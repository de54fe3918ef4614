"""
Typed condition blocks for each goal type, and typed funnel step criteria.

Goals store their conditions as JSON; this module turns that JSON into one of
a closed set of pydantic models, keyed by the goal's ``type``. Anything that
does not validate raises GoalDefinitionError so the caller can skip the goal.
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from goal_engine.exceptions import GoalDefinitionError

logger = logging.getLogger(__name__)

GOAL_TYPE_EVENT = "event"
GOAL_TYPE_PAGEVIEW = "pageview"
GOAL_TYPE_DURATION = "duration"
GOAL_TYPE_PAGES_PER_SESSION = "pages_per_session"

GOAL_TYPES = (GOAL_TYPE_EVENT, GOAL_TYPE_PAGEVIEW, GOAL_TYPE_DURATION, GOAL_TYPE_PAGES_PER_SESSION)

VALUE_TYPE_NONE = "none"
VALUE_TYPE_FIXED = "fixed"
VALUE_TYPE_DYNAMIC = "dynamic"

VALUE_TYPES = (VALUE_TYPE_NONE, VALUE_TYPE_FIXED, VALUE_TYPE_DYNAMIC)


# ── Goal condition blocks ───────────────────────────────────────────────

class EventConditions(BaseModel):
    """All given fields must pass; an empty block matches every event."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    event_name: Optional[str] = None
    event_category: Optional[str] = None
    min_value: Optional[float] = None
    property_matches: Dict[str, Any] = Field(default_factory=dict)


class PageViewConditions(BaseModel):
    """Only the first rule present is used: exact, pattern, regex, contains."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    path_exact: Optional[str] = None
    path_pattern: Optional[str] = None
    path_regex: Optional[str] = None
    path_contains: Optional[str] = None


class DurationConditions(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    min_seconds: float


class PagesPerSessionConditions(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    min_pages: int


ConditionBlock = Union[EventConditions, PageViewConditions, DurationConditions, PagesPerSessionConditions]

CONDITION_MODELS = {
    GOAL_TYPE_EVENT: EventConditions,
    GOAL_TYPE_PAGEVIEW: PageViewConditions,
    GOAL_TYPE_DURATION: DurationConditions,
    GOAL_TYPE_PAGES_PER_SESSION: PagesPerSessionConditions,
}


def parse_conditions(goal_type: str, raw: Any) -> ConditionBlock:
    """
    Validates a raw conditions mapping against the model for ``goal_type``.

    Raises:
        GoalDefinitionError: unknown goal type, non-mapping input, or
            fields that fail validation.
    """
    model = CONDITION_MODELS.get(goal_type)
    if model is None:
        raise GoalDefinitionError(f"Unknown goal type '{goal_type}'")
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise GoalDefinitionError(f"Conditions for a '{goal_type}' goal must be a mapping, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise GoalDefinitionError(f"Invalid '{goal_type}' conditions: {e.errors()}") from e


# ── Funnel step criteria ────────────────────────────────────────────────

class _StepBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_criteria(cls, data: Any) -> Any:
        # {type, criteria: {...}} and flat {type, event_name, ...} are both accepted;
        # criteria win over outer keys, and a name inside criteria is the event name
        if isinstance(data, dict) and isinstance(data.get("criteria"), dict):
            merged = {k: v for k, v in data.items() if k != "criteria"}
            for key, value in data["criteria"].items():
                if key == "name":
                    merged.setdefault("event_name", value)
                    merged.setdefault("name", value)
                else:
                    merged[key] = value
            return merged
        return data


class EventStep(_StepBase):
    type: Literal["event"] = "event"
    event_name: Optional[str] = None
    event_category: Optional[str] = None
    property_matches: Dict[str, Any] = Field(default_factory=dict)

    @property
    def match_name(self) -> Optional[str]:
        """Event name filter; the step name doubles as the event name when none is given."""
        return self.event_name or self.name


class PageViewStep(_StepBase):
    type: Literal["pageview"]
    path_exact: Optional[str] = None
    path: Optional[str] = None
    path_pattern: Optional[str] = None
    path_regex: Optional[str] = None
    path_contains: Optional[str] = None

    @property
    def exact_path(self) -> Optional[str]:
        return self.path_exact or self.path


FunnelStep = Union[EventStep, PageViewStep]

STEP_MODELS = {
    "event": EventStep,
    "pageview": PageViewStep,
}


def parse_funnel_step(raw: Any) -> Optional[FunnelStep]:
    """
    Parses one funnel step definition.

    Returns None for a step of an unknown type (it contributes zero visitors).

    Raises:
        GoalDefinitionError: if the step is not a mapping or fails validation.
    """
    if not isinstance(raw, dict):
        raise GoalDefinitionError(f"Funnel step must be a mapping, got {type(raw).__name__}")
    step_type = raw.get("type") or "event"
    model = STEP_MODELS.get(step_type)
    if model is None:
        logger.warning(f"Unknown funnel step type '{step_type}'")
        return None
    try:
        return model.model_validate({**raw, "type": step_type})
    except ValidationError as e:
        raise GoalDefinitionError(f"Invalid funnel step: {e.errors()}") from e


def parse_funnel_steps(raw_steps: Optional[List[Any]]) -> List[Optional[FunnelStep]]:
    return [parse_funnel_step(raw) for raw in (raw_steps or [])]
