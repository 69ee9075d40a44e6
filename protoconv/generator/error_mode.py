"""Struct-wide fallibility of the wire to native direction."""

import logging
from dataclasses import dataclass, field, replace

from .strategy import (
    Collection,
    ConfigurationError,
    Custom,
    ErrorMode,
    ErrorModeKind,
    FieldStrategy,
    OptionUnwrap,
    ResolvedField,
    iter_error_modes,
)
from .types import DEFAULT_CONVERSION_ERROR_SUFFIX, StructSchema

logger = logging.getLogger(__name__)

MISSING_FIELD = "MissingField"


@dataclass(frozen=True)
class ErrorTypeDecl:
    """An error class the emitter must declare for a struct."""

    name: str
    variants: tuple[str, ...] = (MISSING_FIELD,)


@dataclass(frozen=True)
class ConversionMode:
    """Infallible, or fallible with the error type raised by ``from_proto``."""

    fallible: bool = False
    error_type: str | None = None
    variants: tuple[str, ...] = ()
    synthesized: bool = False

    @classmethod
    def infallible(cls) -> "ConversionMode":
        return cls()

    def __str__(self) -> str:
        if not self.fallible:
            return "Infallible"
        return f"Fallible({self.error_type})"


@dataclass(frozen=True)
class ErrorAnalysis:
    """Result of analyzing one struct.

    ``fields`` carries the resolved fields with AutoError rewritten to
    CustomError when the struct declares its own error type.
    """

    mode: ConversionMode
    fields: list[ResolvedField]
    error_decl: ErrorTypeDecl | None = None
    evaluation_order: list[str] = field(default_factory=list)
    # panic fields that abort before a later erroring field is reached
    shadowing_panics: list[tuple[str, str]] = field(default_factory=list)


def error_type_name(struct: StructSchema) -> str:
    return f"{struct.name}{DEFAULT_CONVERSION_ERROR_SUFFIX}"


def _rewrite(strategy: FieldStrategy, error_fn: str | None, struct: str, field_name: str) -> FieldStrategy:
    """Turn every AutoError inside a strategy into CustomError(error_fn)."""
    if isinstance(strategy, OptionUnwrap) and strategy.error_mode.kind == ErrorModeKind.AUTO_ERROR:
        if error_fn is None:
            raise ConfigurationError(
                "no error_fn available for the declared error_type", struct, field_name
            )
        return replace(strategy, error_mode=ErrorMode.custom_error(error_fn))
    if isinstance(strategy, Custom) and strategy.from_fn is None and strategy.fallback is not None:
        return replace(strategy, fallback=_rewrite(strategy.fallback, error_fn, struct, field_name))
    if isinstance(strategy, Collection):
        return replace(strategy, inner=_rewrite(strategy.inner, error_fn, struct, field_name))
    return strategy


def _is_fallible(strategy: FieldStrategy) -> bool:
    return any(mode.is_fallible for mode in iter_error_modes(strategy))


def _is_panicking(strategy: FieldStrategy) -> bool:
    return any(mode.kind == ErrorModeKind.PANIC for mode in iter_error_modes(strategy))


def analyze(struct: StructSchema, fields: list[ResolvedField]) -> ErrorAnalysis:
    """Decide the struct's conversion mode from its resolved fields.

    Fields are walked in declaration order, which is also the order the
    generated ``from_proto`` evaluates them in.
    """
    if struct.error_type is not None:
        fields = [
            replace(
                rf,
                strategy=_rewrite(
                    rf.strategy, rf.field.directives.error_fn or struct.error_fn, struct.name, rf.name
                ),
            )
            for rf in fields
        ]

    fallible = [rf.name for rf in fields if _is_fallible(rf.strategy)]
    shadowing: list[tuple[str, str]] = []
    for index, rf in enumerate(fields):
        if not _is_panicking(rf.strategy):
            continue
        shadowing.extend(
            (rf.name, later.name) for later in fields[index + 1 :] if later.name in fallible
        )
    for panic_field, error_field in shadowing:
        logger.debug(
            "%s: %s panics before %s can report an error", struct.name, panic_field, error_field
        )

    order = [rf.name for rf in fields]
    if not fallible:
        return ErrorAnalysis(ConversionMode.infallible(), fields, None, order, shadowing)

    if struct.error_type is not None:
        mode = ConversionMode(True, struct.error_type, (), synthesized=False)
        return ErrorAnalysis(mode, fields, None, order, shadowing)

    decl = ErrorTypeDecl(error_type_name(struct))
    mode = ConversionMode(True, decl.name, decl.variants, synthesized=True)
    return ErrorAnalysis(mode, fields, decl, order, shadowing)
