"""Parameter Resolver - Template variable resolution.

Resolves {{dotted.path}} template variables against an execution's variable
map. Unresolvable paths leave the original token in place so a missing
variable never aborts a run.
"""

import json
import re
from typing import Any, Dict, Mapping

from crm_workflows.core.logging import get_logger

logger = get_logger(__name__)

# Compiled regex for template matching
TEMPLATE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')

# Legacy single-brace rule templates, e.g. {lead.company_name}
LEGACY_TEMPLATE_PATTERN = re.compile(r'(?<!\{)\{([A-Za-z_][\w.]*)\}(?!\})')


def get_nested_value(data: Any, field_path: str) -> Any:
    """Get a nested value using dot notation.

    Args:
        data: Mapping (or list) to extract value from
        field_path: Dot-separated path (e.g., "lead.email", "items.0.name")

    Returns:
        Value at path or None if not found

    Examples:
        >>> get_nested_value({"lead": {"email": "a@b.c"}}, "lead.email")
        'a@b.c'
        >>> get_nested_value({"items": [{"name": "a"}]}, "items.0.name")
        'a'
    """
    if data is None or not field_path:
        return None

    current = data
    for part in field_path.strip().split('.'):
        if current is None:
            return None

        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None

    return current


def to_text(value: Any) -> str:
    """String form of a resolved value as it appears inside interpolated text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_variables(text: Any, variables: Mapping[str, Any]) -> Any:
    """Replace every {{path}} in ``text`` with the value found in ``variables``.

    Non-string input is returned unchanged. Tokens whose path is missing or
    resolves to None are left as-is.
    """
    if not isinstance(text, str) or '{{' not in text:
        return text

    def _substitute(match: re.Match) -> str:
        value = get_nested_value(variables, match.group(1))
        if value is None:
            return match.group(0)
        return to_text(value)

    return TEMPLATE_PATTERN.sub(_substitute, text)


def resolve_parameters(parameters: Dict[str, Any], variables: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively resolve templates in every string value of a parameter dict."""
    def _resolve(value: Any) -> Any:
        if isinstance(value, str):
            return resolve_variables(value, variables)
        if isinstance(value, dict):
            return {k: _resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_resolve(v) for v in value]
        return value

    return _resolve(parameters)


def convert_legacy_template(text: Any, aliases: Mapping[str, str] = None) -> Any:
    """Rewrite single-brace rule templates into {{path}} templates.

    Args:
        text: Template text such as "Deal {deal.value} won"
        aliases: Optional path rewrites, e.g. {"deal.value": "deal.deal_value"}

    Returns:
        Text using double-brace templates, or the input if not a string
    """
    if not isinstance(text, str):
        return text
    aliases = aliases or {}

    def _convert(match: re.Match) -> str:
        path = match.group(1)
        return "{{" + aliases.get(path, path) + "}}"

    return LEGACY_TEMPLATE_PATTERN.sub(_convert, text)


def resolve_value(value: Any, variables: Mapping[str, Any]) -> Any:
    """Resolve a parameter value, keeping the native type of a lone token.

    "{{deal.amount}}" yields the number itself rather than its text, so
    resolved filter and update values compare like the stored data. Any
    other string is interpolated with :func:`resolve_variables`.
    """
    if isinstance(value, str):
        match = TEMPLATE_PATTERN.fullmatch(value.strip())
        if match:
            resolved = get_nested_value(variables, match.group(1))
            if resolved is not None:
                return resolved
    return resolve_variables(value, variables)
