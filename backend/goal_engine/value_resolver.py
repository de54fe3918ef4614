"""
Value resolver: the numeric value attached to a conversion.
"""

import logging
from typing import Any, Optional

from goal_engine.condition_evaluator import get_path, to_number
from goal_engine.conditions import VALUE_TYPE_DYNAMIC, VALUE_TYPE_FIXED
from goal_engine.triggers import EVENT

logger = logging.getLogger(__name__)


def resolve_value(goal: Any, trigger: Any) -> Optional[float]:
    """
    Computes the conversion value for ``goal`` given the trigger that satisfied it.

    Args:
        goal: Goal row (value_type, fixed_value, dynamic_value_path).
        trigger: EventTrigger, PageViewTrigger or SessionTrigger.

    Returns:
        The fixed value, the numeric value found at the dynamic path of an
        event's properties, or None ("no monetary value").
    """
    value_type = goal.value_type or "none"

    if value_type == VALUE_TYPE_FIXED:
        return to_number(goal.fixed_value)

    if value_type == VALUE_TYPE_DYNAMIC:
        path = goal.dynamic_value_path
        if not path or getattr(trigger, "kind", None) != EVENT:
            return None
        value = to_number(get_path(trigger.properties or {}, path))
        if value is None:
            logger.debug(f"Goal {goal.id}: no numeric value at '{path}'")
        return value

    return None
