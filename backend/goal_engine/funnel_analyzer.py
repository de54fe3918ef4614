"""
Funnel Analyzer: step-by-step visitor counts, conversion and drop-off rates,
period comparisons and bottleneck ranking for goals with funnel steps.

Each step's visitors are counted independently over the whole range. A
visitor counts towards step N whether or not they reached the earlier steps,
and the order in which steps happened is not checked.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from goal_engine.conditions import parse_funnel_steps
from goal_engine.date_range import DateRange
from goal_engine.exceptions import ConfigurationError
from goal_engine.funnel_models import ComparisonReport, FunnelReport, FunnelStepResult, StepChange
from goal_engine.stores import UNSCOPED, Scope
from goal_engine.visitor_query import SqlVisitorQuery, VisitorQuery

logger = logging.getLogger(__name__)


def _rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


class FunnelAnalyzer:
    """Analyzes multi-step conversion funnels defined on goals."""

    def __init__(self, visitor_query: VisitorQuery):
        self.visitor_query = visitor_query

    @classmethod
    def for_db(cls, db: Session, scope: Scope = UNSCOPED) -> "FunnelAnalyzer":
        return cls(SqlVisitorQuery(db, scope))

    def analyze(self, goal: Any, date_range: DateRange) -> FunnelReport:
        """
        Analyzes the goal's funnel within a date range.

        Args:
            goal: Goal with ``funnel_steps``.
            date_range: Range the step queries are restricted to.

        Returns:
            FunnelReport with one FunnelStepResult per step.

        Raises:
            ConfigurationError: if the goal has no funnel steps.
            GoalDefinitionError: if a step definition is malformed.
        """
        raw_steps = goal.funnel_steps
        if not raw_steps:
            raise ConfigurationError(f"Goal '{goal.name}' has no funnel steps")
        if not isinstance(raw_steps, list):
            raise ConfigurationError(f"Goal '{goal.name}' funnel steps must be a list")

        parsed = parse_funnel_steps(raw_steps)
        results: List[FunnelStepResult] = []
        previous: Optional[int] = None

        for index, (raw, step) in enumerate(zip(raw_steps, parsed)):
            visitors = len(self.visitor_query.distinct_visitors(step, date_range)) if step is not None else 0

            if previous is None:
                conversion_rate, dropoff_rate, dropoff_count = 100.0, 0.0, 0
            else:
                conversion_rate = _rate(visitors, previous)
                dropoff_rate = round(100 - conversion_rate, 2)
                dropoff_count = max(0, previous - visitors)

            results.append(FunnelStepResult(
                step=index + 1,
                name=(step.name if step is not None else raw.get("name")) or f"Step {index + 1}",
                type=step.type if step is not None else str(raw.get("type") or "unknown"),
                visitors=visitors,
                conversion_rate=conversion_rate,
                dropoff_rate=dropoff_rate,
                dropoff_count=dropoff_count,
            ))
            previous = visitors

        entry = results[0].visitors
        completed = results[-1].visitors
        logger.debug(f"Funnel for goal {goal.id}: {[r.visitors for r in results]}")

        return FunnelReport(
            goal_id=goal.id,
            goal_name=goal.name,
            date_range=date_range.to_dict(),
            steps=results,
            overall_conversion=_rate(completed, entry),
            total_steps=len(results),
            total_dropoff=entry - completed,
            entry_visitors=entry,
            completed_visitors=completed,
        )

    def compare(self, goal: Any, current_range: DateRange, previous_range: DateRange) -> ComparisonReport:
        """Compares funnel performance between two ranges; ``change`` is in percentage points."""
        current = self.analyze(goal, current_range)
        previous = self.analyze(goal, previous_range)

        change = round(current.overall_conversion - previous.overall_conversion, 2)
        if previous.overall_conversion > 0:
            change_percent = round(change / previous.overall_conversion * 100, 2)
        else:
            change_percent = 100.0 if current.overall_conversion > 0 else 0.0

        trend = "up" if change > 0 else "down" if change < 0 else "stable"

        return ComparisonReport(
            current=current,
            previous=previous,
            change=change,
            change_percent=change_percent,
            trend=trend,
            step_changes=self._step_changes(current.steps, previous.steps),
        )

    def get_bottlenecks(self, goal: Any, date_range: DateRange, limit: int = 3) -> List[FunnelStepResult]:
        """Steps after the first, highest drop-off first (ties keep funnel order)."""
        if limit <= 0:
            return []
        report = self.analyze(goal, date_range)
        ranked = sorted(report.steps[1:], key=lambda s: s.dropoff_rate, reverse=True)
        return ranked[:limit]

    def _step_changes(self, current_steps: List[FunnelStepResult], previous_steps: List[FunnelStepResult]) -> List[StepChange]:
        changes = []
        for current, previous in zip(current_steps, previous_steps):
            changes.append(StepChange(
                step=current.step,
                name=current.name,
                current_rate=current.conversion_rate,
                previous_rate=previous.conversion_rate,
                rate_change=round(current.conversion_rate - previous.conversion_rate, 2),
                current_visitors=current.visitors,
                previous_visitors=previous.visitors,
                visitor_change=current.visitors - previous.visitors,
            ))
        return changes
