"""Errors raised by generated conversion code."""

from typing import Any

MISSING_FIELD = "MissingField"


class ConversionError(Exception):
    """Base class for errors returned by a fallible ``from_proto``.

    Generated error classes subclass this with the variants they can carry.
    User-declared error types may subclass it too, but only need to be
    raisable exceptions built from a field name.
    """

    variants: tuple[str, ...] = (MISSING_FIELD,)

    def __init__(self, variant: str, field: str) -> None:
        if variant not in self.variants:
            raise ValueError(f"{type(self).__name__} has no variant {variant!r}")
        self.variant = variant
        self.field = field
        super().__init__(variant, field)

    @classmethod
    def missing_field(cls, field: str) -> "ConversionError":
        return cls(MISSING_FIELD, field)

    def __str__(self) -> str:
        if self.variant == MISSING_FIELD:
            return f"Missing required field: {self.field}"
        return f"{self.variant}: {self.field}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.variant}({self.field!r})"

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (self.variant, self.field) == (other.variant, other.field)

    def __hash__(self) -> int:
        return hash((type(self), self.variant, self.field))


class ConversionPanic(RuntimeError):
    """A required wire value was absent and the field has no error path."""
