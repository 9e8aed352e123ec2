"""
Tool Argument Validation

Checks call arguments against the subset of JSON Schema that tool servers
declare in practice: type, required, properties, items, enum and
additionalProperties.
"""

from typing import Any, Dict, List

from .errors import ArgumentValidationError

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: (isinstance(v, int) and not isinstance(v, bool))
    or (isinstance(v, float) and v.is_integer()),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


def _check(value: Any, schema: Dict[str, Any], path: str, problems: List[str]):
    if not isinstance(schema, dict):
        return

    expected = schema.get("type")
    if expected:
        types = expected if isinstance(expected, list) else [expected]
        known = [t for t in types if t in _TYPE_CHECKS]
        if known and not any(_TYPE_CHECKS[t](value) for t in known):
            problems.append(f"{path} must be of type {' or '.join(known)}")
            return

    if "enum" in schema and isinstance(schema["enum"], list) and value not in schema["enum"]:
        problems.append(f"{path} must be one of {schema['enum']}")

    if isinstance(value, dict):
        properties = schema.get("properties") or {}
        for name in schema.get("required") or []:
            if name not in value:
                field = name if path == "arguments" else f"{path}.{name}"
                problems.append(f"missing required argument '{field}'")
        for name, item in value.items():
            if name in properties:
                _check(item, properties[name], f"{path}.{name}", problems)
            elif schema.get("additionalProperties") is False:
                problems.append(f"unexpected argument {path}.{name}")

    elif isinstance(value, list) and isinstance(schema.get("items"), dict):
        for i, item in enumerate(value):
            _check(item, schema["items"], f"{path}[{i}]", problems)


def validate_arguments(tool_name: str, schema: Dict[str, Any], arguments: Dict[str, Any]):
    """Raise ArgumentValidationError listing every mismatch between arguments and schema."""
    problems: List[str] = []
    _check(arguments, schema or {}, "arguments", problems)
    if problems:
        raise ArgumentValidationError(tool_name, problems)
