"""
Goal and conversion stores backed by SQLAlchemy.

Site/tenant scope is passed in explicitly; a scoped store sees rows of its own
site/tenant plus unscoped (NULL) rows.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from goal_engine.models import DEDUPE_CONSTRAINT, Conversion, Goal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scope:
    """Site/tenant filter applied to every goal and fact lookup."""
    site_id: Optional[int] = None
    tenant_id: Optional[str] = None

    def apply(self, query, model):
        if self.site_id is not None:
            query = query.filter(or_(model.site_id == self.site_id, model.site_id.is_(None)))
        if self.tenant_id is not None:
            query = query.filter(or_(model.tenant_id == str(self.tenant_id), model.tenant_id.is_(None)))
        return query


UNSCOPED = Scope()


def _is_dedupe_conflict(error: IntegrityError) -> bool:
    # SQLite names the columns, PostgreSQL and MySQL name the constraint
    message = str(error.orig)
    return DEDUPE_CONSTRAINT in message or "analytics_conversions.dedupe_key" in message


class GoalStore:
    def __init__(self, db: Session, scope: Scope = UNSCOPED):
        self.db = db
        self.scope = scope

    def query(self):
        return self.scope.apply(self.db.query(Goal), Goal)

    def active_goals(self, goal_type: str) -> List[Goal]:
        return (
            self.query()
            .filter(Goal.type == goal_type, Goal.is_active.is_(True))
            .order_by(Goal.id)
            .all()
        )

    def get(self, goal_id: int) -> Optional[Goal]:
        return self.query().filter(Goal.id == goal_id).first()


class ConversionStore:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, goal_id: int, dedupe_key: Optional[str]) -> bool:
        if dedupe_key is None:
            return False
        return (
            self.db.query(Conversion.id)
            .filter(Conversion.goal_id == goal_id, Conversion.dedupe_key == dedupe_key)
            .first()
            is not None
        )

    def insert(self, **fields: Any) -> Optional[Conversion]:
        """
        Inserts and commits a conversion.

        The insert runs in a SAVEPOINT so that a unique-constraint conflict on
        (goal_id, dedupe_key) only discards this row.

        Returns:
            The stored Conversion, or None if an equivalent conversion already exists
            or the database rejected the row.
        """
        conversion = Conversion(**fields)
        try:
            with self.db.begin_nested():
                self.db.add(conversion)
        except IntegrityError as e:
            if not _is_dedupe_conflict(e):
                logger.warning(f"Could not record conversion for goal {fields.get('goal_id')}: {e.orig}")
                return None
            logger.debug(
                f"Conversion for goal {fields.get('goal_id')} ({fields.get('dedupe_key')}) already recorded"
            )
            return None
        self.db.commit()
        return conversion

    def for_goal(self, goal_id: int) -> List[Conversion]:
        return (
            self.db.query(Conversion)
            .filter(Conversion.goal_id == goal_id)
            .order_by(Conversion.created_at, Conversion.id)
            .all()
        )

    def counts_by_goal(self) -> Dict[int, int]:
        rows = (
            self.db.query(Conversion.goal_id, func.count(Conversion.id))
            .group_by(Conversion.goal_id)
            .all()
        )
        return {goal_id: count for goal_id, count in rows}
