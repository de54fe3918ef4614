"""
Goal Loader: reads goal definitions from YAML and syncs them into the goal store.

File layout::

    goals:
      signup:
        type: event
        conditions: {event_name: signup}
      checkout_funnel:
        type: pageview
        conditions: {path_pattern: "/thank-you*"}
        funnel_steps:
          - {name: Cart, type: pageview, path_exact: /cart}
          - {name: Checkout, type: pageview, path_pattern: "/checkout*"}

Invalid entries are recorded as errors and skipped; they never abort the load.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

import yaml

from goal_engine.exceptions import ConfigurationError, GoalDefinitionError
from goal_engine.goal_service import GoalService, validate_definition
from goal_engine.schemas import GoalDefinition

logger = logging.getLogger(__name__)


@dataclass
class GoalLoadResult:
    definitions: List[GoalDefinition] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def validated(self) -> bool:
        return not self.errors


def load_goal_definitions(path: Union[str, Path]) -> GoalLoadResult:
    """
    Loads goal definitions from a YAML file.

    Raises:
        ConfigurationError: if the file is missing or is not valid YAML.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Goals file not found: {path}")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Goals file {path} is not valid YAML: {e}") from e

    raw_goals = data.get("goals") if isinstance(data, dict) else None
    if raw_goals is None:
        raw_goals = {}
    if isinstance(raw_goals, dict):
        entries = []
        for name, body in raw_goals.items():
            entries.append({"name": name, **body} if isinstance(body, dict) else body)
    elif isinstance(raw_goals, list):
        entries = raw_goals
    else:
        raise ConfigurationError(f"'goals' in {path} must be a mapping or a list")

    result = GoalLoadResult()
    for index, entry in enumerate(entries):
        label = entry.get("name", f"#{index}") if isinstance(entry, dict) else f"#{index}"
        if not isinstance(entry, dict):
            result.errors.append(f"goal {label}: definition must be a mapping")
            continue
        try:
            result.definitions.append(validate_definition(entry))
        except GoalDefinitionError as e:
            result.errors.append(f"goal {label}: {e}")

    logger.info(f"Loaded {len(result.definitions)} goal definitions from {path}")
    for error in result.errors:
        logger.warning(f"Skipped invalid goal definition: {error}")
    return result


def sync_goals(service: GoalService, definitions: List[GoalDefinition]) -> Dict[str, int]:
    """Creates goals that do not exist yet and updates the rest, matching by name."""
    counts = {"created": 0, "updated": 0}
    for definition in definitions:
        existing = service.find_by_name(definition.name)
        if existing is None:
            service.create(**definition.model_dump(exclude_none=True))
            counts["created"] += 1
        else:
            service.update(existing, **definition.model_dump(exclude={"site_id", "tenant_id"}))
            counts["updated"] += 1
    logger.info(f"Synced goals: {counts['created']} created, {counts['updated']} updated")
    return counts
