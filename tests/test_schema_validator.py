import pytest

from mcp_chat_gateway.llm_core import SchemaValidator, ToolValidationError


def test_assert_no_recursive_refs_no_recursion():
    schema = {
        "type": "object",
        "properties": {
            "prop1": {"type": "string"},
            "prop2": {"type": "object", "properties": {"subprop": {"type": "integer"}}},
        },
    }
    # Should not raise
    SchemaValidator.assert_no_recursive_refs(schema)


def test_assert_no_recursive_refs_with_recursion():
    schema = {
        "$defs": {"Node": {"type": "object", "properties": {"child": {"$ref": "#/$defs/Node"}}}},
        "properties": {"root": {"$ref": "#/$defs/Node"}},
    }
    with pytest.raises(ToolValidationError, match="Recursive structure detected"):
        SchemaValidator.assert_no_recursive_refs(schema)


@pytest.mark.parametrize(
    "schema",
    [
        ["not", "a", "dict"],
        {"type": "string"},
        {"type": "object", "properties": {"x": {"type": "no-such-type"}}},
    ],
)
def test_assert_object_schema_rejects_unusable_schemas(schema):
    with pytest.raises(ToolValidationError):
        SchemaValidator.assert_object_schema(schema, "bad_tool")


def test_assert_object_schema_accepts_missing_type():
    SchemaValidator.assert_object_schema({"properties": {"x": {"type": "string"}}}, "tool")


def test_resolve_refs_inlines_definitions():
    schema = {
        "type": "object",
        "$defs": {"City": {"type": "string", "description": "City name"}},
        "properties": {"city": {"$ref": "#/$defs/City"}},
    }

    resolved = SchemaValidator.resolve_refs(schema)

    assert resolved["properties"]["city"] == {"type": "string", "description": "City name"}


def test_sanitize_schema_removes_metadata():
    schema = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "$id": "http://example.com/schema",
        "title": "MySchema",
        "type": "object",
        "properties": {"field": {"type": "string", "title": "FieldTitle"}},
        "definitions": {"SomeDef": {}},
    }
    sanitized = SchemaValidator.sanitize_schema(schema)

    assert "$schema" not in sanitized
    assert "$id" not in sanitized
    assert "title" not in sanitized
    assert "definitions" not in sanitized
    assert "title" not in sanitized["properties"]["field"]


def test_sanitize_schema_keeps_properties_named_like_keywords():
    schema = {
        "type": "object",
        "properties": {"title": {"type": "string"}, "$id": {"type": "integer"}},
        "required": ["title"],
    }

    sanitized = SchemaValidator.sanitize_schema(schema)

    assert set(sanitized["properties"]) == {"title", "$id"}
    assert sanitized["required"] == ["title"]


def test_sanitize_schema_simplifies_optional():
    # Simulating Optional[int] -> anyOf: [type: integer, type: null]
    schema = {
        "type": "object",
        "properties": {
            "optional_field": {
                "anyOf": [{"type": "integer", "description": "An integer"}, {"type": "null"}],
                "description": "Parent description",
                "default": None,
            }
        },
    }
    sanitized = SchemaValidator.sanitize_schema(schema)
    field = sanitized["properties"]["optional_field"]

    assert "anyOf" not in field
    assert field["type"] == "integer"
    assert field["description"] == "Parent description"
    assert field["default"] is None


def test_sanitize_schema_enforces_additional_properties():
    schema = {"type": "object", "properties": {"nested": {"type": "object", "properties": {}}}}

    sanitized = SchemaValidator.sanitize_schema(schema)

    assert sanitized["additionalProperties"] is False
    assert sanitized["properties"]["nested"]["additionalProperties"] is False


def test_validate_arguments_accepts_valid_arguments():
    schema = {"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]}

    SchemaValidator.validate_arguments(schema, {"city": "Berlin"}, "get_weather")


def test_validate_arguments_reports_the_failing_location():
    schema = {"type": "object", "properties": {"days": {"type": "integer", "maximum": 7}}}

    with pytest.raises(ToolValidationError, match="at 'days'"):
        SchemaValidator.validate_arguments(schema, {"days": 30}, "get_forecast")


def test_validate_arguments_reports_missing_required():
    schema = {"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]}

    with pytest.raises(ToolValidationError, match="'city' is a required property"):
        SchemaValidator.validate_arguments(schema, {}, "get_weather")
