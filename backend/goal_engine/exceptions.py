"""
Error hierarchy for the goal engine.

Only errors a caller is expected to handle live here; evaluation-time
problems with a single goal are logged and skipped by the matcher.
"""


class GoalEngineError(Exception):
    """Base class for all goal engine errors."""
    pass


class ConfigurationError(GoalEngineError):
    """Raised when a goal or the engine itself is configured inconsistently."""
    pass


class GoalDefinitionError(GoalEngineError):
    """Raised when a goal's type, conditions or value settings are malformed."""
    pass


class GoalNotFoundError(GoalEngineError):
    """Raised when a goal lookup by id or name finds nothing."""
    pass
