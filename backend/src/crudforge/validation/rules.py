"""Built-in validation rules.

Numeric comparisons (gt, gte, lt, lte, eq, ne, min, max, len) compare the
value itself for numbers and the length for strings and lists.
"""

import re
from typing import Any

from crudforge.validation.registry import RuleRegistry
from crudforge.validation.types import RuleCheck

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

ALPHANUM_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")


def _is_empty(value: Any) -> bool:
    """Check if a value is considered empty."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, dict)) and len(value) == 0:
        return True
    return False


def _measure(value: Any) -> float:
    """Number to compare: the value for numbers, the length otherwise."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, list, dict)):
        return len(value)
    raise TypeError(f"cannot compare value of type {type(value).__name__}")


def _number_param(param: str | None) -> float:
    if param is None:
        raise ValueError("missing numeric parameter")
    try:
        return float(param)
    except ValueError:
        raise ValueError(f"parameter {param!r} is not a number") from None


def _no_param(param: str | None) -> None:
    if param is not None:
        raise ValueError("rule takes no parameter")


def _comparison(compare):
    def factory(param: str | None) -> RuleCheck:
        bound = _number_param(param)
        return lambda value: compare(_measure(value), bound)

    return factory


def _required(param: str | None) -> RuleCheck:
    _no_param(param)
    return lambda value: not _is_empty(value)


def _oneof(param: str | None) -> RuleCheck:
    if not param or not param.split():
        raise ValueError("oneof needs at least one value")
    allowed = set(param.split())
    return lambda value: str(value) in allowed


def _pattern(pattern: re.Pattern):
    def factory(param: str | None) -> RuleCheck:
        _no_param(param)
        return lambda value: isinstance(value, str) and bool(pattern.match(value))

    return factory


BUILTIN_RULES = {
    "required": _required,
    "gt": _comparison(lambda value, bound: value > bound),
    "gte": _comparison(lambda value, bound: value >= bound),
    "lt": _comparison(lambda value, bound: value < bound),
    "lte": _comparison(lambda value, bound: value <= bound),
    "eq": _comparison(lambda value, bound: value == bound),
    "ne": _comparison(lambda value, bound: value != bound),
    "min": _comparison(lambda value, bound: value >= bound),
    "max": _comparison(lambda value, bound: value <= bound),
    "len": _comparison(lambda value, bound: value == bound),
    "oneof": _oneof,
    "email": _pattern(EMAIL_PATTERN),
    "url": _pattern(URL_PATTERN),
    "alphanum": _pattern(ALPHANUM_PATTERN),
}


def register_builtin_rules() -> None:
    """Register the framework-provided rule tags. Idempotent."""
    for name, factory in BUILTIN_RULES.items():
        RuleRegistry.register_factory(name, factory)
