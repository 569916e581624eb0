"""
Knowledge payload - tagged variants for the nested values the pipeline emits.

Pipeline stages hand over arbitrary JSON-shaped output (table descriptors,
narrative sections, rule lists). Converting it once into explicit variants
lets the chunker dispatch on the variant type instead of probing raw
dicts and lists at every level.

Variants:
- NullValue
- BoolValue
- NumberValue
- StringValue
- ArrayValue
- ObjectValue (key order preserved)
"""

import json
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple, Union

from ..core.exceptions import InputError


class Payload:
    """Base class for all payload variants."""

    def is_empty(self) -> bool:
        raise NotImplementedError

    def to_python(self) -> Any:
        """Convert back to plain JSON-compatible Python values."""
        raise NotImplementedError


@dataclass(frozen=True)
class NullValue(Payload):

    def is_empty(self) -> bool:
        return True

    def to_python(self) -> Any:
        return None


@dataclass(frozen=True)
class BoolValue(Payload):
    value: bool

    def is_empty(self) -> bool:
        return False

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class NumberValue(Payload):
    value: Union[int, float]

    def is_empty(self) -> bool:
        return False

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class StringValue(Payload):
    value: str

    def is_empty(self) -> bool:
        return not self.value.strip()

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ArrayValue(Payload):
    items: Tuple[Payload, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Payload]:
        return iter(self.items)

    def is_empty(self) -> bool:
        return not self.items

    def to_python(self) -> Any:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class ObjectValue(Payload):
    fields: Tuple[Tuple[str, Payload], ...] = ()

    def __len__(self) -> int:
        return len(self.fields)

    def items(self) -> Iterator[Tuple[str, Payload]]:
        return iter(self.fields)

    def keys(self) -> Iterator[str]:
        return (key for key, _ in self.fields)

    def get(self, key: str) -> Optional[Payload]:
        for field_key, value in self.fields:
            if field_key == key:
                return value
        return None

    def is_empty(self) -> bool:
        return not self.fields

    def to_python(self) -> Any:
        return {key: value.to_python() for key, value in self.fields}


def payload_from_json(value: Any) -> Payload:
    """
    Convert a decoded JSON value into payload variants.

    Args:
        value: Result of json.load / a dict built by a pipeline stage.
               Payload instances are returned unchanged.

    Returns:
        Payload variant tree

    Raises:
        InputError: If a value is not JSON-shaped (e.g. a set or an object)
    """
    if isinstance(value, Payload):
        return value
    if value is None:
        return NullValue()
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return BoolValue(value)
    if isinstance(value, (int, float)):
        return NumberValue(value)
    if isinstance(value, str):
        return StringValue(value)
    if isinstance(value, (list, tuple)):
        return ArrayValue(tuple(payload_from_json(item) for item in value))
    if isinstance(value, dict):
        return ObjectValue(tuple(
            (str(key), payload_from_json(item)) for key, item in value.items()
        ))
    raise InputError(f"Unsupported payload value of type {type(value).__name__}")


def format_scalar(value: Payload) -> str:
    """
    Render a scalar variant as a single line of text.

    Arrays and objects are rendered as compact JSON.
    """
    if isinstance(value, NullValue):
        return "null"
    if isinstance(value, BoolValue):
        return "true" if value.value else "false"
    if isinstance(value, NumberValue):
        number = value.value
        if isinstance(number, float) and number.is_integer():
            return str(int(number))
        return str(number)
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, (ArrayValue, ObjectValue)):
        return json.dumps(value.to_python(), ensure_ascii=False, default=str)
    raise TypeError(f"Unknown payload variant: {type(value).__name__}")
