"""
Field declarations, the JSON-Schema bridge, and schema validation.
"""

from .fields import (
    JSON_SCHEMA_DRAFT,
    FieldList,
    FieldType,
    InputField,
    default_values,
    field_to_property,
    fields_to_json_schema,
    json_schema_to_fields,
    normalize_fields,
    private_field_keys,
    property_to_field,
)
from .validation import SchemaValidator, validate

__all__ = [
    "JSON_SCHEMA_DRAFT",
    "FieldList",
    "FieldType",
    "InputField",
    "SchemaValidator",
    "default_values",
    "field_to_property",
    "fields_to_json_schema",
    "json_schema_to_fields",
    "normalize_fields",
    "private_field_keys",
    "property_to_field",
    "validate",
]
