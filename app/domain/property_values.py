"""
app/domain/property_values.py

Typed entity property definitions and value coercion.

Entity property bags are validated against the owning entity type's
definitions at write time; stored values are plain JSON.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from app.validators.row_validator import parse_date, parse_number

_PROPERTY_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_\-]*$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_TRUE_VALUES = {"true", "yes", "y", "1"}
_FALSE_VALUES = {"false", "no", "n", "0"}


class PropertyType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DATE = "date"
    BOOLEAN = "boolean"
    EMAIL = "email"
    URL = "url"


class PropertyDefinitionError(ValueError):
    """
    Raised when an entity type's property definitions are malformed.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "key": self.key}


class PropertyValidationError(ValueError):
    """
    Raised when a value cannot be coerced to its property's declared type.
    """

    def __init__(self, *, key: str, property_type: PropertyType | None, value: Any, message: str) -> None:
        super().__init__(message)
        self.key = key
        self.property_type = property_type
        self.value = value
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "key": self.key,
            "type": self.property_type.value if self.property_type else None,
            "value": None if self.value is None else str(self.value),
        }


@dataclass(frozen=True)
class PropertyDefinition:
    key: str
    label: str
    type: PropertyType = PropertyType.TEXT
    visible: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "visible": self.visible,
        }


def parse_property_definitions(raw: Iterable[Mapping[str, Any]] | None) -> list[PropertyDefinition]:
    """
    Validate raw definitions (as stored in JSON) and return them typed.

    Keys must be unique within one entity type; a missing label defaults
    to the key and a missing type to ``text``.
    """

    definitions: list[PropertyDefinition] = []
    seen: set[str] = set()
    for item in raw or []:
        key = str(item.get("key") or "").strip()
        if not key or not _PROPERTY_KEY_PATTERN.match(key):
            raise PropertyDefinitionError(f"Invalid property key '{key}'.", key=key or None)
        if key in seen:
            raise PropertyDefinitionError(f"Duplicate property key '{key}'.", key=key)
        seen.add(key)

        raw_type = str(item.get("type") or PropertyType.TEXT.value).strip().lower()
        try:
            property_type = PropertyType(raw_type)
        except ValueError as exc:
            raise PropertyDefinitionError(f"Unknown property type '{raw_type}'.", key=key) from exc

        label = str(item.get("label") or "").strip() or key
        visible = item.get("visible")
        definitions.append(
            PropertyDefinition(
                key=key,
                label=label,
                type=property_type,
                visible=True if visible is None else bool(visible),
            )
        )
    return definitions


def coerce_property_value(
    definition: PropertyDefinition,
    value: Any,
    *,
    currency_code: str = "USD",
) -> Any:
    """
    Coerce one raw value to the JSON representation of its declared type.

    Blank values become ``None``. Currency values are stored as
    ``{"amount": ..., "currency": ...}``; dates as ISO strings.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    property_type = definition.type
    if property_type == PropertyType.TEXT:
        return str(value).strip()

    if property_type in (PropertyType.NUMBER, PropertyType.PERCENTAGE):
        number = parse_number(value)
        if number is None:
            raise _invalid(definition, value, "Value is not numeric.")
        return number

    if property_type == PropertyType.CURRENCY:
        if isinstance(value, Mapping):
            amount = parse_number(value.get("amount"))
            code = str(value.get("currency") or currency_code).strip().upper()
        else:
            amount = parse_number(value)
            code = currency_code.upper()
        if amount is None:
            raise _invalid(definition, value, "Currency amount is not numeric.")
        if len(code) != 3 or not code.isalpha():
            raise _invalid(definition, value, f"Invalid currency code '{code}'.")
        return {"amount": amount, "currency": code}

    if property_type == PropertyType.DATE:
        parsed = parse_date(value)
        if parsed is None:
            raise _invalid(definition, value, "Invalid date format.")
        return parsed.isoformat()

    if property_type == PropertyType.BOOLEAN:
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise _invalid(definition, value, "Value is not a boolean.")

    if property_type == PropertyType.EMAIL:
        text = str(value).strip()
        if not _EMAIL_PATTERN.match(text):
            raise _invalid(definition, value, "Invalid email address.")
        return text.lower()

    if property_type == PropertyType.URL:
        text = str(value).strip()
        parsed_url = urlparse(text)
        if parsed_url.scheme not in {"http", "https"} or not parsed_url.netloc:
            raise _invalid(definition, value, "URL must start with http:// or https://.")
        return text

    raise _invalid(definition, value, f"Unsupported property type '{property_type}'.")


def coerce_properties(
    definitions: Iterable[PropertyDefinition],
    values: Mapping[str, Any],
    *,
    currency_code: str = "USD",
) -> dict[str, Any]:
    """
    Coerce a whole property bag, raising on the first unknown key or bad value.
    """

    by_key = {definition.key: definition for definition in definitions}
    coerced: dict[str, Any] = {}
    for key, value in values.items():
        definition = by_key.get(key)
        if definition is None:
            raise PropertyValidationError(
                key=key,
                property_type=None,
                value=value,
                message=f"Unknown property '{key}' for this entity type.",
            )
        coerced[key] = coerce_property_value(definition, value, currency_code=currency_code)
    return coerced


def _invalid(definition: PropertyDefinition, value: Any, message: str) -> PropertyValidationError:
    return PropertyValidationError(
        key=definition.key,
        property_type=definition.type,
        value=value,
        message=message,
    )
