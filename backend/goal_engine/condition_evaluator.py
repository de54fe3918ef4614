"""
Condition evaluator: matches one observed value against one condition spec.

A spec is either a scalar (loose equality) or an operator mapping such as
``{"gt": 100}`` or ``{"in": ["pro", "enterprise"]}``. Evaluation never
raises: unknown operators, bad patterns and missing values all yield False.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_PCRE_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,  # str patterns are unicode already
}
_BRACKET_DELIMITERS = {"(": ")", "[": "]", "{": "}", "<": ">"}


# ── Coercion helpers ────────────────────────────────────────────────────

def to_number(value: Any) -> Optional[float]:
    """Float for ints, floats, decimals and numeric strings; None otherwise (bools included)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str) and _NUMERIC_RE.match(value):
        return float(value)
    return None


def to_string(value: Any) -> Optional[str]:
    """String form of a scalar; None for containers and other non-scalars."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float, Decimal)):
        return str(value)
    return None


def loose_equals(observed: Any, target: Any) -> bool:
    if observed is None or target is None:
        return observed is None and target is None
    left, right = to_number(observed), to_number(target)
    if left is not None and right is not None:
        return left == right
    left_s, right_s = to_string(observed), to_string(target)
    if left_s is None or right_s is None:
        return observed == target
    return left_s == right_s


def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compiles a regex, accepting PCRE-style delimiters and trailing flags
    (``/^\\/order\\/[0-9]+$/i``) as well as bare Python patterns.

    Raises:
        re.error: if the pattern is invalid.
    """
    if len(pattern) >= 2 and not pattern[0].isalnum() and pattern[0] not in "\\ ^(.[":
        opener = pattern[0]
        closer = _BRACKET_DELIMITERS.get(opener, opener)
        end = pattern.rfind(closer)
        modifiers = pattern[end + 1:] if end > 0 else None
        # "/checkout/.*" has no valid modifier tail, so it is a bare pattern
        if modifiers is not None and all(flag in _PCRE_FLAGS for flag in modifiers):
            flags = 0
            for flag in modifiers:
                flags |= _PCRE_FLAGS[flag]
            return re.compile(pattern[1:end], flags)
    return re.compile(pattern)


# ── Operators ───────────────────────────────────────────────────────────

def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def op(observed: Any, target: Any) -> bool:
        left, right = to_number(observed), to_number(target)
        if left is None or right is None:
            return False
        return compare(left, right)
    return op


def _string(compare: Callable[[str, str], bool]) -> Callable[[Any, Any], bool]:
    def op(observed: Any, target: Any) -> bool:
        if observed is None:
            return False
        left, right = to_string(observed), to_string(target)
        if left is None or right is None:
            return False
        return compare(left, right)
    return op


def _in(observed: Any, target: Any) -> bool:
    if observed is None or not isinstance(target, (list, tuple, set)):
        return False
    return any(loose_equals(observed, candidate) for candidate in target)


def _not_in(observed: Any, target: Any) -> bool:
    if not isinstance(target, (list, tuple, set)):
        return False
    return not any(loose_equals(observed, candidate) for candidate in target)


def _neq(observed: Any, target: Any) -> bool:
    return not loose_equals(observed, target)


def _regex(observed: Any, target: Any) -> bool:
    if observed is None or not isinstance(target, str):
        return False
    subject = to_string(observed)
    if subject is None:
        return False
    try:
        return compile_pattern(target).search(subject) is not None
    except re.error as e:
        logger.warning(f"Invalid regex condition {target!r}: {e}")
        return False


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": loose_equals,
    "neq": _neq,
    "gt": _numeric(lambda a, b: a > b),
    "lt": _numeric(lambda a, b: a < b),
    "gte": _numeric(lambda a, b: a >= b),
    "lte": _numeric(lambda a, b: a <= b),
    "contains": _string(lambda a, b: b in a),
    "starts_with": _string(lambda a, b: a.startswith(b)),
    "ends_with": _string(lambda a, b: a.endswith(b)),
    "in": _in,
    "not_in": _not_in,
    "regex": _regex,
}


def matches(observed: Any, spec: Any) -> bool:
    """
    Evaluates ``observed`` against a condition spec.

    Args:
        observed: Value taken from the trigger (None when absent).
        spec: Scalar for loose equality, or a mapping of operator -> target.
            Every operator in the mapping must pass.

    Returns:
        True if the condition holds, False otherwise (including on any error).
    """
    if not isinstance(spec, dict):
        return loose_equals(observed, spec)
    if not spec:
        return False
    for op_name, target in spec.items():
        op = OPERATORS.get(op_name)
        if op is None:
            logger.debug(f"Unknown condition operator '{op_name}'")
            return False
        try:
            if not op(observed, target):
                return False
        except Exception as e:
            logger.warning(f"Error evaluating '{op_name}' condition: {e}")
            return False
    return True


def get_path(data: Any, path: str) -> Any:
    """Gets nested value from dict using dot notation; None when any segment is missing."""
    value = data
    for key in path.split("."):
        if isinstance(value, dict):
            value = value.get(key)
        elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return None
    return value


def glob_matches(pattern: str, subject: Optional[str]) -> bool:
    """Whole-string glob match where ``*`` matches any run of characters (slashes included)."""
    if subject is None:
        return False
    if pattern == subject:
        return True
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, subject, flags=re.DOTALL) is not None
