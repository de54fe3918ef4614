"""
Trigger facts handed to the engine by the ingestion pipeline.

Each variant carries a ``kind`` tag; the matcher dispatches on the tag
through lookup tables rather than type checks.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

EVENT = "event"
PAGEVIEW = "pageview"
SESSION = "session"


@dataclass(frozen=True)
class EventTrigger:
    """A custom event (button click, purchase, form submit...)."""
    kind: ClassVar[str] = EVENT
    name: str
    category: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    value: Optional[float] = None
    session_id: Optional[str] = None
    visitor_id: Optional[str] = None
    path: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class PageViewTrigger:
    """A single page view."""
    kind: ClassVar[str] = PAGEVIEW
    path: str
    title: Optional[str] = None
    session_id: Optional[str] = None
    visitor_id: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class SessionTrigger:
    """A session, usually evaluated once it has ended."""
    kind: ClassVar[str] = SESSION
    id: str
    duration: float = 0
    page_count: int = 0
    visitor_id: Optional[str] = None
    entry_page: Optional[str] = None
    exit_page: Optional[str] = None


@dataclass(frozen=True)
class VisitorRef:
    """Resolved visitor identity supplied by the identity collaborator."""
    id: str


Trigger = Union[EventTrigger, PageViewTrigger, SessionTrigger]


def ref_id(ref: Any) -> Optional[str]:
    """Identifier of a session/visitor reference given as an object or a raw id."""
    if ref is None:
        return None
    if isinstance(ref, (str, int)):
        return str(ref)
    value = getattr(ref, "id", None)
    return str(value) if value is not None else None
