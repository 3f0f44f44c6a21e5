"""
Field/Schema Bridge.

Converts between declarative input-field lists and JSON-Schema documents.
The mapping is lossless in both directions for everything the bridge
itself produces:

    json_schema_to_fields(fields_to_json_schema(fields)) == fields
    fields_to_json_schema(json_schema_to_fields(schema)) == schema

Type mapping:
    string    -> {"type": "string"}
    text      -> {"type": "string", "format": "text"}
    password  -> {"type": "string", "format": "password"}
    datetime  -> {"type": "string", "format": "date-time"}
    number    -> {"type": "number"}
    integer   -> {"type": "integer"}
    boolean   -> {"type": "boolean"}
    object    -> {"type": "object"}

`multiple` wraps the type in an array, `allow_null` adds "null" to the
outermost type, and `dynamic` / `placeholder` are kept as extra keywords.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from destkit.utils.jsonutil import UNDEFINED

JSON_SCHEMA_DRAFT = "http://json-schema.org/schema#"


class FieldType(str, Enum):
    """Input field types."""

    STRING = "string"
    TEXT = "text"
    PASSWORD = "password"
    DATETIME = "datetime"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"


_TYPE_TO_SCHEMA: dict[FieldType, tuple[str, str | None]] = {
    FieldType.STRING: ("string", None),
    FieldType.TEXT: ("string", "text"),
    FieldType.PASSWORD: ("string", "password"),
    FieldType.DATETIME: ("string", "date-time"),
    FieldType.NUMBER: ("number", None),
    FieldType.INTEGER: ("integer", None),
    FieldType.BOOLEAN: ("boolean", None),
    FieldType.OBJECT: ("object", None),
}
_SCHEMA_TO_TYPE = {v: k for k, v in _TYPE_TO_SCHEMA.items()}


@dataclass(frozen=True, kw_only=True)
class InputField:
    """
    A typed field declaration.

    `default` is UNDEFINED when the field declares no default, so that a
    declared default of None survives the round trip.
    """

    key: str
    type: FieldType = FieldType.STRING
    label: str = ""
    description: str = ""
    default: Any = UNDEFINED
    required: bool = False
    multiple: bool = False
    dynamic: bool = False
    allow_null: bool = False
    placeholder: str = ""

    @property
    def has_default(self) -> bool:
        return self.default is not UNDEFINED

    @classmethod
    def from_dict(cls, key: str, data: Mapping[str, Any]) -> InputField:
        """
        Build a field from its declarative dict form.

        Accepts both snake_case and camelCase (`allowNull`).

        Raises:
            ValueError: If the field type is not supported
        """
        return cls(
            key=key,
            type=FieldType(data.get("type", FieldType.STRING.value)),
            label=data.get("label", ""),
            description=data.get("description", ""),
            default=data.get("default", UNDEFINED),
            required=bool(data.get("required", False)),
            multiple=bool(data.get("multiple", False)),
            dynamic=bool(data.get("dynamic", False)),
            allow_null=bool(data.get("allow_null", data.get("allowNull", False))),
            placeholder=data.get("placeholder", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "key": self.key,
            "type": self.type.value,
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "multiple": self.multiple,
            "dynamic": self.dynamic,
            "allowNull": self.allow_null,
        }
        if self.has_default:
            result["default"] = self.default
        if self.placeholder:
            result["placeholder"] = self.placeholder
        return result


class FieldList(list):
    """
    Fields read back from a schema document.

    Remembers the document's additionalProperties so converting the list
    back yields the same document.
    """

    def __init__(self, fields: Iterable[InputField] = (), *, additional_properties: bool = False):
        super().__init__(fields)
        self.additional_properties = additional_properties


FieldsInput = Iterable[InputField] | Mapping[str, "InputField | Mapping[str, Any]"]


def normalize_fields(fields: FieldsInput | None) -> list[InputField]:
    """Accept a list of InputField or a {key: field-or-dict} mapping."""
    if fields is None:
        return []
    if isinstance(fields, Mapping):
        normalized = []
        for key, value in fields.items():
            if isinstance(value, InputField):
                normalized.append(value)
            else:
                normalized.append(InputField.from_dict(key, value))
        return normalized
    return list(fields)


def field_to_property(field: InputField) -> dict[str, Any]:
    """JSON-Schema property definition for a single field."""
    schema_type, schema_format = _TYPE_TO_SCHEMA[field.type]
    inner: dict[str, Any] = {"type": schema_type}
    if schema_format:
        inner["format"] = schema_format

    prop: dict[str, Any] = {"type": "array", "items": inner} if field.multiple else dict(inner)
    if field.allow_null:
        prop["type"] = [prop["type"], "null"]

    if field.label:
        prop["title"] = field.label
    if field.description:
        prop["description"] = field.description
    if field.has_default:
        prop["default"] = field.default
    if field.placeholder:
        prop["placeholder"] = field.placeholder
    if field.dynamic:
        prop["dynamic"] = True
    return prop


def fields_to_json_schema(
    fields: FieldsInput | None,
    *,
    additional_properties: bool | None = None,
) -> dict[str, Any]:
    """
    Convert field declarations to a JSON-Schema object document.

    Properties keep declaration order; `required` lists required keys in
    the same order. Settings schemas pass additional_properties=True since
    settings carry more than the declared authentication fields. When
    omitted, a FieldList keeps the flag it was read with; anything else
    defaults to False.
    """
    if additional_properties is None:
        additional_properties = getattr(fields, "additional_properties", False)
    normalized = normalize_fields(fields)
    return {
        "$schema": JSON_SCHEMA_DRAFT,
        "type": "object",
        "additionalProperties": additional_properties,
        "properties": {f.key: field_to_property(f) for f in normalized},
        "required": [f.key for f in normalized if f.required],
    }


def property_to_field(key: str, prop: Mapping[str, Any], required: bool = False) -> InputField:
    """
    Convert a JSON-Schema property definition back to a field.

    Raises:
        ValueError: If the property's type/format has no field type
    """
    schema_type = prop.get("type", "string")
    allow_null = False
    if isinstance(schema_type, list):
        non_null = [t for t in schema_type if t != "null"]
        allow_null = len(non_null) != len(schema_type)
        if len(non_null) != 1:
            raise ValueError(f"Property {key!r} has an unsupported type union {schema_type}")
        schema_type = non_null[0]

    multiple = schema_type == "array"
    if multiple:
        items = prop.get("items", {})
        inner_type = items.get("type", "string")
        inner_format = items.get("format")
    else:
        inner_type = schema_type
        inner_format = prop.get("format")
    field_type = _SCHEMA_TO_TYPE.get((inner_type, inner_format))
    if field_type is None:
        # Formats the bridge does not model (e.g. "email") degrade to the plain type
        field_type = _SCHEMA_TO_TYPE.get((inner_type, None))
    if field_type is None:
        raise ValueError(f"Property {key!r} has an unsupported type {inner_type!r}")

    return InputField(
        key=key,
        type=field_type,
        label=prop.get("title", ""),
        description=prop.get("description", ""),
        default=prop.get("default", UNDEFINED),
        required=required,
        multiple=multiple,
        dynamic=bool(prop.get("dynamic", False)),
        allow_null=allow_null,
        placeholder=prop.get("placeholder", ""),
    )


def json_schema_to_fields(schema: Mapping[str, Any] | None) -> FieldList:
    """Convert a JSON-Schema object document to field declarations."""
    if not schema:
        return FieldList()
    required = set(schema.get("required", []))
    return FieldList(
        (
            property_to_field(key, prop, key in required)
            for key, prop in schema.get("properties", {}).items()
        ),
        additional_properties=bool(schema.get("additionalProperties", False)),
    )


def default_values(fields: FieldsInput | None) -> dict[str, Any]:
    """Declared defaults keyed by field key."""
    return {f.key: f.default for f in normalize_fields(fields) if f.has_default}


def private_field_keys(fields: FieldsInput | None) -> list[str]:
    """Keys of password fields, which are redacted from instrumentation."""
    return [f.key for f in normalize_fields(fields) if f.type is FieldType.PASSWORD]
