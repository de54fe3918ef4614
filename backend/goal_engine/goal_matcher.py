"""
Goal Matcher: evaluates triggers against configured goals and records conversions.

For each trigger the matcher selects the active goals of the matching type,
checks their condition block, applies the goal's de-duplication policy,
resolves the conversion value, persists the conversion and notifies listeners.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from goal_engine.condition_evaluator import compile_pattern, get_path, glob_matches, matches, to_number
from goal_engine.conditions import (
    GOAL_TYPE_DURATION,
    GOAL_TYPE_EVENT,
    GOAL_TYPE_PAGES_PER_SESSION,
    GOAL_TYPE_PAGEVIEW,
    DurationConditions,
    EventConditions,
    PagesPerSessionConditions,
    PageViewConditions,
    parse_conditions,
)
from goal_engine.exceptions import GoalDefinitionError
from goal_engine.models import Conversion, Goal
from goal_engine.notifications import ConversionNotifier, GoalConverted
from goal_engine.stores import UNSCOPED, ConversionStore, GoalStore, Scope
from goal_engine.triggers import (
    EVENT,
    PAGEVIEW,
    SESSION,
    EventTrigger,
    PageViewTrigger,
    SessionTrigger,
    Trigger,
    ref_id,
)
from goal_engine.value_resolver import resolve_value

logger = logging.getLogger(__name__)

# trigger kind -> goal types evaluated for it
GOAL_POOLS: Dict[str, Tuple[str, ...]] = {
    EVENT: (GOAL_TYPE_EVENT,),
    PAGEVIEW: (GOAL_TYPE_PAGEVIEW,),
    SESSION: (GOAL_TYPE_DURATION, GOAL_TYPE_PAGES_PER_SESSION),
}


# ── Condition checks per goal type ──────────────────────────────────────

def matches_event(conditions: EventConditions, event: EventTrigger) -> bool:
    if conditions.event_name is not None and event.name != conditions.event_name:
        return False
    if conditions.event_category is not None and event.category != conditions.event_category:
        return False
    if conditions.min_value is not None:
        value = to_number(event.value)
        if value is None or value < conditions.min_value:
            return False
    properties = event.properties or {}
    for path, spec in conditions.property_matches.items():
        if not matches(get_path(properties, path), spec):
            return False
    return True


def matches_page_view(conditions: PageViewConditions, page_view: PageViewTrigger) -> bool:
    path = page_view.path
    if conditions.path_exact is not None:
        return path == conditions.path_exact
    if conditions.path_pattern is not None:
        return glob_matches(conditions.path_pattern, path)
    if conditions.path_regex is not None:
        try:
            pattern = compile_pattern(conditions.path_regex)
        except re.error as e:
            raise GoalDefinitionError(f"Invalid path_regex {conditions.path_regex!r}: {e}") from e
        return pattern.search(path or "") is not None
    if conditions.path_contains is not None:
        return conditions.path_contains in (path or "")
    return False


def matches_duration(conditions: DurationConditions, session: SessionTrigger) -> bool:
    duration = to_number(session.duration)
    return duration is not None and duration >= conditions.min_seconds


def matches_pages_per_session(conditions: PagesPerSessionConditions, session: SessionTrigger) -> bool:
    page_count = to_number(session.page_count)
    return page_count is not None and page_count >= conditions.min_pages


CONDITION_CHECKS: Dict[str, Callable[[Any, Any], bool]] = {
    GOAL_TYPE_EVENT: matches_event,
    GOAL_TYPE_PAGEVIEW: matches_page_view,
    GOAL_TYPE_DURATION: matches_duration,
    GOAL_TYPE_PAGES_PER_SESSION: matches_pages_per_session,
}


# ── Metadata snapshots per trigger kind ─────────────────────────────────

def _event_metadata(event: EventTrigger) -> Dict[str, Any]:
    return {
        "trigger_type": EVENT,
        "event_name": event.name,
        "event_category": event.category,
        "event_properties": dict(event.properties or {}),
        "event_value": event.value,
    }


def _page_view_metadata(page_view: PageViewTrigger) -> Dict[str, Any]:
    return {
        "trigger_type": PAGEVIEW,
        "path": page_view.path,
        "title": page_view.title,
    }


def _session_metadata(session: SessionTrigger) -> Dict[str, Any]:
    return {
        "trigger_type": SESSION,
        "duration": session.duration,
        "page_count": session.page_count,
        "entry_page": session.entry_page,
        "exit_page": session.exit_page,
    }


METADATA_EXTRACTORS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    EVENT: _event_metadata,
    PAGEVIEW: _page_view_metadata,
    SESSION: _session_metadata,
}


def dedupe_key(goal: Goal, session_id: Optional[str], visitor_id: Optional[str]) -> Optional[str]:
    """Uniqueness key for single-conversion goals; None when duplicates are allowed."""
    if goal.allow_multiple:
        return None
    if session_id is not None:
        return f"session:{session_id}"
    if visitor_id is not None:
        return f"visitor:{visitor_id}"
    return None


class GoalMatcher:
    """Matches triggers against active goals and records conversions."""

    def __init__(
        self,
        goal_store: GoalStore,
        conversion_store: ConversionStore,
        notifier: Optional[ConversionNotifier] = None,
        scope: Scope = UNSCOPED,
    ):
        self.goal_store = goal_store
        self.conversion_store = conversion_store
        self.notifier = notifier or ConversionNotifier()
        self.scope = scope

    @classmethod
    def for_db(cls, db: Session, scope: Scope = UNSCOPED, notifier: Optional[ConversionNotifier] = None) -> "GoalMatcher":
        return cls(GoalStore(db, scope), ConversionStore(db), notifier, scope)

    def evaluate(self, trigger: Trigger, session: Optional[Any] = None, visitor: Optional[Any] = None) -> List[Conversion]:
        """
        Evaluates one trigger against every active goal of the matching type.

        Args:
            trigger: EventTrigger, PageViewTrigger or SessionTrigger.
            session: Session the trigger belongs to (object with ``id`` or a raw id).
                A SessionTrigger is its own session.
            visitor: Visitor the trigger belongs to (object with ``id`` or a raw id).

        Returns:
            Newly recorded conversions; empty if nothing matched or all were duplicates.
        """
        goal_types = GOAL_POOLS.get(getattr(trigger, "kind", None))
        if goal_types is None:
            logger.warning(f"Unsupported trigger {type(trigger).__name__}")
            return []

        if session is None and trigger.kind == SESSION:
            session = trigger
        session_id = ref_id(session) or (None if trigger.kind == SESSION else trigger.session_id)
        visitor_id = ref_id(visitor) or trigger.visitor_id

        conversions: List[Conversion] = []
        for goal_type in goal_types:
            for goal in self.goal_store.active_goals(goal_type):
                try:
                    conversion = self._evaluate_goal(goal, trigger, session_id, visitor_id)
                except GoalDefinitionError as e:
                    logger.warning(f"Skipping goal {goal.id} ('{goal.name}'): {e}")
                    continue
                except Exception as e:
                    logger.error(f"Error evaluating goal {goal.id} ('{goal.name}'): {e}")
                    continue
                if conversion is None:
                    continue
                conversions.append(conversion)
                self.notifier.emit(GoalConverted(goal, conversion, session, visitor))

        if conversions:
            logger.info(f"Recorded {len(conversions)} conversion(s) for {trigger.kind} trigger")
        return conversions

    def _evaluate_goal(
        self,
        goal: Goal,
        trigger: Trigger,
        session_id: Optional[str],
        visitor_id: Optional[str],
    ) -> Optional[Conversion]:
        conditions = parse_conditions(goal.type, goal.conditions)
        if not CONDITION_CHECKS[goal.type](conditions, trigger):
            return None

        key = dedupe_key(goal, session_id, visitor_id)
        if self.conversion_store.exists(goal.id, key):
            logger.debug(f"Goal {goal.id} already converted for {key}")
            return None

        return self.conversion_store.insert(
            goal_id=goal.id,
            site_id=self.scope.site_id if self.scope.site_id is not None else goal.site_id,
            tenant_id=str(self.scope.tenant_id) if self.scope.tenant_id is not None else goal.tenant_id,
            session_id=session_id,
            visitor_id=visitor_id,
            event_id=ref_id(trigger.id) if trigger.kind == EVENT else None,
            page_view_id=ref_id(trigger.id) if trigger.kind == PAGEVIEW else None,
            value=resolve_value(goal, trigger),
            trigger_metadata=METADATA_EXTRACTORS[trigger.kind](trigger),
            dedupe_key=key,
        )
