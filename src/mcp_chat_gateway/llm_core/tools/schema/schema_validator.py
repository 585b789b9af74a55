from typing import Any, Dict, Set, cast

import jsonref  # type: ignore
from jsonschema import ValidationError, SchemaError
from jsonschema.validators import validator_for

from ...exceptions import ToolValidationError
from ...logger import get_logger

logger = get_logger(__name__)


class SchemaValidator:
    """
    Helper class for checking, sanitizing and enforcing JSON schemas of LLM tools.
    """

    @staticmethod
    def assert_object_schema(schema: Any, tool_name: str) -> None:
        """
        Checks that a tool input schema is a well-formed JSON schema describing an object.

        Args:
            schema: The schema reported for the tool.
            tool_name: Tool name for error reporting.

        Raises:
            ToolValidationError: If the schema is not a dict, not an object schema, or not a valid JSON schema.
        """
        if not isinstance(schema, dict):
            raise ToolValidationError(f"Tool '{tool_name}' has a non-object input schema: {type(schema).__name__}.")

        schema_type = schema.get("type", "object")
        if schema_type != "object":
            raise ToolValidationError(f"Tool '{tool_name}' input schema must describe an object, got '{schema_type}'.")

        try:
            validator_for(schema).check_schema(schema)
        except SchemaError as e:
            raise ToolValidationError(f"Tool '{tool_name}' has an invalid input schema: {e.message}") from e

    @staticmethod
    def assert_no_recursive_refs(schema: Dict[str, Any]) -> None:
        """
        Checks if the schema contains recursive references by traversing the graph.
        Raises ToolValidationError if a cycle is detected.

        Args:
            schema: The JSON schema to check.

        Raises:
            ToolValidationError: If a recursive reference is found.
        """
        defs = schema.get("$defs", {}) or schema.get("definitions", {})

        def check(node: Any, path: Set[str]) -> None:
            if isinstance(node, dict):
                if "$ref" in node:
                    ref = node["$ref"]
                    if ref in path:
                        msg = (
                            f"Recursive structure detected: {ref}. "
                            "Recursive structures are not allowed in tool inputs. "
                            "Use parent_id, lists, or a workflow loop instead."
                        )
                        logger.error(msg)
                        raise ToolValidationError(msg)

                    # If it's a local ref, follow it
                    # e.g. #/$defs/MyModel
                    if ref.startswith("#"):
                        parts = ref.split("/")
                        if len(parts) >= 3:
                            def_name = parts[-1]
                            if def_name in defs:
                                check(defs[def_name], path | {ref})
                    return

                for v in node.values():
                    check(v, path)
            elif isinstance(node, list):
                for item in node:
                    check(item, path)

        check(schema, set())

    @staticmethod
    def resolve_refs(schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inlines local ``$ref`` pointers. Must only be called after ``assert_no_recursive_refs``.

        Args:
            schema: The JSON schema to resolve.

        Returns:
            A plain dict with every local reference replaced by its target.
        """
        # proxies=False ensures we get a plain dict back, not JsonRef objects
        return cast(Dict[str, Any], jsonref.replace_refs(schema, proxies=False))

    @staticmethod
    def sanitize_schema(schema: Any) -> Any:
        """
        Cleans up the schema for better compatibility with LLM providers.
        Removes $defs, $schema, $id, title.
        Simplifies Optional fields (anyOf with null).
        Enforces additionalProperties: false for objects.

        Args:
            schema: The JSON schema to sanitize.

        Returns:
            The sanitized schema.
        """
        if not isinstance(schema, dict):
            return schema

        new_schema = schema.copy()

        for key in ["$defs", "$schema", "$id", "title", "definitions"]:
            new_schema.pop(key, None)

        # Optional[X] arrives as anyOf [X, null]
        if "anyOf" in new_schema:
            any_of = new_schema["anyOf"]
            non_null = [x for x in any_of if not (isinstance(x, dict) and x.get("type") == "null")]

            if len(non_null) == 1 and isinstance(non_null[0], dict):
                # We prefer the description from the parent if present
                merged = non_null[0].copy()
                if "description" in new_schema:
                    merged["description"] = new_schema["description"]
                if "default" in new_schema:
                    merged["default"] = new_schema["default"]
                return SchemaValidator.sanitize_schema(merged)

        if new_schema.get("type") == "object":
            if "additionalProperties" not in new_schema:
                new_schema["additionalProperties"] = False

        for key, value in new_schema.items():
            if key == "properties" and isinstance(value, dict):
                # Property names are user data, never metadata keys.
                new_schema[key] = {name: SchemaValidator.sanitize_schema(prop) for name, prop in value.items()}
            elif isinstance(value, dict):
                new_schema[key] = SchemaValidator.sanitize_schema(value)
            elif isinstance(value, list):
                new_schema[key] = [
                    SchemaValidator.sanitize_schema(item) if isinstance(item, dict) else item for item in value
                ]

        return new_schema

    @staticmethod
    def validate_arguments(schema: Dict[str, Any], arguments: Dict[str, Any], tool_name: str) -> None:
        """
        Validates call arguments against a tool's input schema.

        Args:
            schema: The tool's input schema.
            arguments: The normalized call arguments.
            tool_name: Tool name for error reporting.

        Raises:
            ToolValidationError: If the arguments do not satisfy the schema.
        """
        validator = validator_for(schema)(schema)
        try:
            validator.validate(arguments)
        except ValidationError as e:
            location = "/".join(str(p) for p in e.absolute_path) or "<root>"
            msg = f"Argument validation failed for tool '{tool_name}' at '{location}': {e.message}"
            logger.warning(msg)
            raise ToolValidationError(msg) from e
