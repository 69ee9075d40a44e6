"""Wire message access helpers for generated code."""

import dataclasses
from typing import Any


def wire_field(message: Any, name: str) -> Any:
    """Value of an optional wire field, or None when it is not set.

    Messages exposing ``HasField`` (protobuf) are asked for presence first;
    fields without presence tracking make ``HasField`` raise ValueError and
    are read directly.
    """
    has_field = getattr(message, "HasField", None)
    if has_field is not None:
        try:
            if not has_field(name):
                return None
        except ValueError:
            pass
    return getattr(message, name, None)


def transparent_inner(value: Any) -> Any:
    """The wrapped value of a single-field native type.

    Only the first field is read; types with more fields are not rejected.
    """
    if dataclasses.is_dataclass(value):
        first = dataclasses.fields(value)[0]
        return getattr(value, first.name)
    return value
