"""
A module for sanitizing tool schemas for the Google Gemini API.

Gemini accepts an OpenAPI subset of JSON Schema. This module keeps only the
keys its Schema model declares and drops ``required`` entries that name
undefined properties, which tool providers occasionally ship.
"""

from functools import singledispatch
from typing import Any, Dict, FrozenSet, Set, cast

from google.genai import types


def _schema_keys() -> FrozenSet[str]:
    keys = set()
    for name, field in types.Schema.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
    # Gemini rejects additionalProperties even where the model declares it.
    keys.discard("additionalProperties")
    keys.discard("additional_properties")
    return frozenset(keys)


_SUPPORTED_KEYS = _schema_keys()


def sanitize(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Performs all necessary, recursive sanitization steps on a tool schema.

    Args:
        schema: The tool parameter schema to sanitize.

    Returns:
        A sanitized schema dictionary ready for the Gemini API.
    """
    return cast(Dict[str, Any], _recursive_sanitize(schema, set()))


@singledispatch
def _recursive_sanitize(schema: Any, seen: Set[int]) -> Any:
    return schema


@_recursive_sanitize.register(dict)
def _(schema: dict, seen: Set[int]) -> dict:
    obj_id = id(schema)
    if obj_id in seen:
        return schema  # Circular reference detected
    seen.add(obj_id)

    sanitized_at_level = _ensure_required_params(schema)

    result = {}
    for key, value in sanitized_at_level.items():
        if key == "properties" and isinstance(value, dict):
            # Property names are user data and may collide with schema keywords.
            result[key] = {name: _recursive_sanitize(prop, seen) for name, prop in value.items()}
        elif key in _SUPPORTED_KEYS:
            result[key] = _recursive_sanitize(value, seen)

    seen.remove(obj_id)
    return result


@_recursive_sanitize.register(list)
def _(schema: list, seen: Set[int]) -> list:
    obj_id = id(schema)
    if obj_id in seen:
        return schema
    seen.add(obj_id)

    result = [_recursive_sanitize(item, seen) for item in schema]

    seen.remove(obj_id)
    return result


def _ensure_required_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Ensures all required parameters in a dictionary are defined in its
    'properties'. This operates on a single dictionary level.
    """
    if "required" not in params or "properties" not in params:
        return params

    _params = params.copy()
    defined_properties = _params["properties"].keys()
    valid_required = [name for name in _params["required"] if name in defined_properties]

    if valid_required:
        _params["required"] = valid_required
    else:
        _params.pop("required", None)

    return _params
