"""
"Goal converted" notifications for reporting and alerting consumers.

Listeners are plain callables registered on a ConversionNotifier. A failing
listener is logged and does not affect the recorded conversion or the other
listeners.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoalConverted:
    """Fired once per newly recorded conversion."""
    goal: Any
    conversion: Any
    session: Optional[Any] = None
    visitor: Optional[Any] = None

    @property
    def goal_name(self) -> str:
        return self.goal.name

    @property
    def goal_type(self) -> str:
        return self.goal.type

    @property
    def value(self) -> Optional[float]:
        return self.conversion.value

    @property
    def metadata(self) -> Optional[Dict[str, Any]]:
        return self.conversion.trigger_metadata


Listener = Callable[[GoalConverted], None]


class ConversionNotifier:
    def __init__(self, listeners: Optional[List[Listener]] = None):
        self._listeners: List[Listener] = list(listeners or [])

    def subscribe(self, listener: Listener) -> Listener:
        """Registers a listener; returns it so this can be used as a decorator."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, notification: GoalConverted) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception(
                    f"Goal converted listener {getattr(listener, '__name__', listener)!r} failed "
                    f"for goal {notification.goal.id}"
                )
