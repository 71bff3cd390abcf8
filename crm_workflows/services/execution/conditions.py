"""Condition evaluation for runtime conditional branching.

Both sides of a predicate go through the variable resolver, so a condition
can compare a variable with a literal or with another variable.

Supported operators:
- equals / not_equals: numeric when both sides parse as numbers,
  otherwise case-insensitive text comparison
- greater_than, less_than, greater_than_or_equal, less_than_or_equal:
  both sides coerced to numbers; a non-numeric side is False
- contains / not_contains, starts_with, ends_with: case-insensitive text
- is_empty / is_not_empty: None, "", "undefined", "null" and empty
  lists or dicts count as empty
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from crm_workflows.constants import CONDITION_OPERATORS
from crm_workflows.core.logging import get_logger
from crm_workflows.services.parameter_resolver import get_nested_value, resolve_variables

logger = get_logger(__name__)


# Type alias for condition dict
ConditionDict = Dict[str, Any]

EMPTY_MARKERS = frozenset(["", "undefined", "null"])


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _numeric_compare(operator: str, actual: Any, target: Any) -> bool:
    a = _to_number(actual)
    b = _to_number(target)
    if a is None or b is None:
        return False
    if operator == "greater_than":
        return a > b
    if operator == "less_than":
        return a < b
    if operator == "greater_than_or_equal":
        return a >= b
    return a <= b


def _loose_equals(actual: Optional[str], target: str) -> bool:
    if actual is None:
        return target == ""
    a = _to_number(actual)
    b = _to_number(target)
    if a is not None and b is not None:
        return a == b
    return actual.lower() == target.lower()


def _is_empty(actual: Optional[str]) -> bool:
    return actual is None or actual.strip().lower() in EMPTY_MARKERS


def _evaluate_operator(operator: str, actual: Optional[str], target: str) -> bool:
    """Evaluate a single operator on resolved text values.

    Args:
        operator: Operator name
        actual: Resolved field text, or None when the field is missing
        target: Resolved comparison text

    Returns:
        Comparison result
    """
    if operator == "equals":
        return _loose_equals(actual, target)
    elif operator == "not_equals":
        return not _loose_equals(actual, target)
    elif operator in ("greater_than", "less_than", "greater_than_or_equal", "less_than_or_equal"):
        return _numeric_compare(operator, actual, target)

    text = (actual or "").lower()
    needle = target.lower()
    if operator == "contains":
        return needle in text
    elif operator == "not_contains":
        return needle not in text
    elif operator == "starts_with":
        return text.startswith(needle)
    elif operator == "ends_with":
        return text.endswith(needle)
    elif operator == "is_empty":
        return _is_empty(actual)
    elif operator == "is_not_empty":
        return not _is_empty(actual)

    logger.warning("Unknown condition operator", operator=operator)
    return False


def evaluate_condition(field: Any, operator: str, value: Any, variables: Dict[str, Any]) -> bool:
    """Evaluate a (field, operator, value) predicate against execution variables.

    Args:
        field: Dotted variable path, resolved as {{field}}
        operator: One of the supported operators
        value: Literal or template compared against the field
        variables: Execution variable map

    Returns:
        True if the predicate holds, False otherwise (never raises)
    """
    try:
        path = str(field or "").strip()
        token = "{{" + path + "}}"
        resolved = resolve_variables(token, variables)
        actual = None if resolved == token else resolved
        raw = get_nested_value(variables, path)
        if isinstance(raw, (list, dict)) and not raw:
            # An empty list or dict reads as empty text
            actual = ""
        target = resolve_variables("" if value is None else str(value), variables)

        result = _evaluate_operator(operator or "equals", actual, target)
        logger.debug("Condition evaluated", field=field, operator=operator,
                     actual=actual, target=target, result=result)
        return result
    except Exception as e:
        logger.warning("Condition evaluation error",
                       field=field,
                       operator=operator,
                       error=str(e))
        return False


def evaluate_conditions(conditions: Iterable[Union[ConditionDict, Any]],
                        variables: Dict[str, Any]) -> bool:
    """Evaluate multiple conditions with AND logic.

    Accepts dicts or objects exposing ``field``/``operator``/``value``.
    An empty list is True.
    """
    for condition in conditions or []:
        if isinstance(condition, dict):
            field, operator, value = (condition.get("field"),
                                      condition.get("operator", "equals"),
                                      condition.get("value"))
        else:
            field, operator, value = condition.field, condition.operator, condition.value
        if not evaluate_condition(field, operator, value, variables):
            return False
    return True


def get_available_operators() -> List[str]:
    """Get list of available condition operators."""
    return sorted(CONDITION_OPERATORS)
