"""Runtime support imported by generated conversion modules."""

from .access import transparent_inner, wire_field
from .errors import MISSING_FIELD, ConversionError, ConversionPanic

__all__ = [
    "MISSING_FIELD",
    "ConversionError",
    "ConversionPanic",
    "transparent_inner",
    "wire_field",
]
