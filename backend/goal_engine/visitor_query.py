"""
Query collaborator for funnel analysis: distinct visitors matching one
funnel step's criteria within a date range.

SQL narrows rows by range, scope, event name/category and path filters that
translate directly; regex and property conditions are applied in Python so
they behave the same on every database backend.
"""

import logging
import re
from typing import Optional, Protocol, Set

from sqlalchemy.orm import Session

from goal_engine.condition_evaluator import compile_pattern, get_path, glob_matches, matches
from goal_engine.conditions import EventStep, FunnelStep, PageViewStep
from goal_engine.date_range import DateRange
from goal_engine.models import AnalyticsEvent, AnalyticsPageView
from goal_engine.stores import UNSCOPED, Scope

logger = logging.getLogger(__name__)


class VisitorQuery(Protocol):
    def distinct_visitors(self, criteria: FunnelStep, date_range: DateRange) -> Set[str]:
        ...


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlVisitorQuery:
    """Answers funnel step queries from the analytics_events / analytics_page_views tables."""

    def __init__(self, db: Session, scope: Scope = UNSCOPED):
        self.db = db
        self.scope = scope

    def distinct_visitors(self, criteria: Optional[FunnelStep], date_range: DateRange) -> Set[str]:
        handlers = {
            "event": self._event_visitors,
            "pageview": self._page_view_visitors,
        }
        handler = handlers.get(getattr(criteria, "type", None))
        if handler is None:
            return set()
        return handler(criteria, date_range)

    def _event_visitors(self, step: EventStep, date_range: DateRange) -> Set[str]:
        query = self.scope.apply(self.db.query(AnalyticsEvent), AnalyticsEvent).filter(
            AnalyticsEvent.created_at.between(date_range.start, date_range.end),
            AnalyticsEvent.visitor_id.isnot(None),
        )
        if step.match_name is not None:
            query = query.filter(AnalyticsEvent.name == step.match_name)
        if step.event_category is not None:
            query = query.filter(AnalyticsEvent.category == step.event_category)

        if not step.property_matches:
            rows = query.with_entities(AnalyticsEvent.visitor_id).distinct().all()
            return {row.visitor_id for row in rows}

        visitors: Set[str] = set()
        for visitor_id, properties in query.with_entities(AnalyticsEvent.visitor_id, AnalyticsEvent.properties):
            props = properties or {}
            if all(matches(get_path(props, path), spec) for path, spec in step.property_matches.items()):
                visitors.add(visitor_id)
        return visitors

    def _page_view_visitors(self, step: PageViewStep, date_range: DateRange) -> Set[str]:
        query = self.scope.apply(self.db.query(AnalyticsPageView), AnalyticsPageView).filter(
            AnalyticsPageView.created_at.between(date_range.start, date_range.end),
            AnalyticsPageView.visitor_id.isnot(None),
        )
        if step.exact_path is not None:
            query = query.filter(AnalyticsPageView.path == step.exact_path)
        if step.path_contains is not None:
            query = query.filter(AnalyticsPageView.path.like(f"%{_like_escape(step.path_contains)}%", escape="\\"))

        if step.path_pattern is None and step.path_regex is None:
            rows = query.with_entities(AnalyticsPageView.visitor_id).distinct().all()
            return {row.visitor_id for row in rows}

        pattern = None
        if step.path_regex is not None:
            try:
                pattern = compile_pattern(step.path_regex)
            except re.error as e:
                logger.warning(f"Invalid funnel path_regex {step.path_regex!r}: {e}")
                return set()

        visitors: Set[str] = set()
        for visitor_id, path in query.with_entities(AnalyticsPageView.visitor_id, AnalyticsPageView.path):
            if step.path_pattern is not None and not glob_matches(step.path_pattern, path):
                continue
            if pattern is not None and pattern.search(path or "") is None:
                continue
            visitors.add(visitor_id)
        return visitors
