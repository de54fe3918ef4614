"""
Goal management service: create, update, delete and (de)activate goals, and
hand out matchers bound to the same database session and scope.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from goal_engine.exceptions import GoalDefinitionError, GoalNotFoundError
from goal_engine.goal_matcher import GoalMatcher
from goal_engine.models import Goal
from goal_engine.notifications import ConversionNotifier
from goal_engine.schemas import GoalDefinition
from goal_engine.stores import UNSCOPED, GoalStore, Scope

logger = logging.getLogger(__name__)

_DEFINITION_FIELDS = tuple(GoalDefinition.model_fields.keys())


def validate_definition(attributes: Dict[str, Any]) -> GoalDefinition:
    try:
        return GoalDefinition(**attributes)
    except ValidationError as e:
        raise GoalDefinitionError(f"Invalid goal definition: {e.errors(include_url=False)}") from e


class GoalService:
    def __init__(self, db: Session, scope: Scope = UNSCOPED, notifier: Optional[ConversionNotifier] = None):
        self.db = db
        self.scope = scope
        self.store = GoalStore(db, scope)
        self.notifier = notifier or ConversionNotifier()

    def create(self, **attributes: Any) -> Goal:
        """
        Validates and stores a new goal.

        Raises:
            GoalDefinitionError: if the definition does not validate.
        """
        if self.scope.site_id is not None:
            attributes.setdefault("site_id", self.scope.site_id)
        if self.scope.tenant_id is not None:
            attributes.setdefault("tenant_id", str(self.scope.tenant_id))
        definition = validate_definition(attributes)
        goal = Goal(**definition.model_dump())
        self.db.add(goal)
        self.db.commit()
        self.db.refresh(goal)
        logger.info(f"Created goal {goal.id} ('{goal.name}', {goal.type})")
        return goal

    def update(self, goal: Union[Goal, int], **attributes: Any) -> Optional[Goal]:
        goal = self._resolve(goal)
        if goal is None:
            return None
        current = {name: getattr(goal, name) for name in _DEFINITION_FIELDS}
        definition = validate_definition({**current, **attributes})
        for name, value in definition.model_dump().items():
            setattr(goal, name, value)
        self.db.commit()
        self.db.refresh(goal)
        return goal

    def delete(self, goal: Union[Goal, int]) -> bool:
        goal = self._resolve(goal)
        if goal is None:
            return False
        goal_id = goal.id
        self.db.delete(goal)
        self.db.commit()
        logger.info(f"Deleted goal {goal_id}")
        return True

    def find(self, goal_id: int) -> Optional[Goal]:
        return self.store.get(goal_id)

    def get(self, goal_id: int) -> Goal:
        goal = self.find(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        return goal

    def find_by_name(self, name: str) -> Optional[Goal]:
        return self.store.query().filter(Goal.name == name).order_by(Goal.id).first()

    def all(self) -> List[Goal]:
        return self.store.query().order_by(Goal.name, Goal.id).all()

    def active(self, goal_type: Optional[str] = None) -> List[Goal]:
        query = self.store.query().filter(Goal.is_active.is_(True))
        if goal_type is not None:
            query = query.filter(Goal.type == goal_type)
        return query.order_by(Goal.name, Goal.id).all()

    def activate(self, goal: Union[Goal, int]) -> bool:
        return self._set_active(goal, True)

    def deactivate(self, goal: Union[Goal, int]) -> bool:
        return self._set_active(goal, False)

    def matcher(self) -> GoalMatcher:
        return GoalMatcher.for_db(self.db, self.scope, self.notifier)

    def _set_active(self, goal: Union[Goal, int], active: bool) -> bool:
        goal = self._resolve(goal)
        if goal is None:
            return False
        goal.is_active = active
        self.db.commit()
        return True

    def _resolve(self, goal: Union[Goal, int]) -> Optional[Goal]:
        return goal if isinstance(goal, Goal) else self.find(goal)
