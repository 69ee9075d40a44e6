"""Field conversion strategies and the resolver that picks one per field.

Resolution is a fixed decision table evaluated top to bottom, first match
wins:

    1. ignore            field directive or struct-level ignore list
    2. custom            from_proto_fn / to_proto_fn (unless transparent)
    3. transparent       re-wrap the single inner wire value
    4. collection        sequence or map, optionally nullable
    5. default           default / default_fn forces an unwrap with fallback
    6. optionality       wire and native presence differ
    7. direct            everything else
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum, auto

from .classify import Classification, Kind, TypeClassifier
from .trace import NULL_TRACER, DiagnosticsTracer
from .types import ExpectMode, FieldSchema, StructSchema

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when directives conflict or reference something undeclared."""

    def __init__(self, message: str, struct: str | None = None, field: str | None = None):
        self.struct = struct
        self.field = field
        self.message = message
        if struct and field:
            message = f"{struct}.{field}: {message}"
        elif struct:
            message = f"{struct}: {message}"
        super().__init__(message)


class ErrorModeKind(StrEnum):
    """What happens when a required native value is absent on the wire."""

    PANIC = auto()
    AUTO_ERROR = auto()
    CUSTOM_ERROR = auto()


@dataclass(frozen=True)
class ErrorMode:
    """Error handling for one unwrapped field."""

    kind: ErrorModeKind
    error_fn: str | None = None

    @classmethod
    def panic(cls) -> "ErrorMode":
        return cls(ErrorModeKind.PANIC)

    @classmethod
    def auto_error(cls) -> "ErrorMode":
        return cls(ErrorModeKind.AUTO_ERROR)

    @classmethod
    def custom_error(cls, error_fn: str) -> "ErrorMode":
        return cls(ErrorModeKind.CUSTOM_ERROR, error_fn)

    @property
    def is_fallible(self) -> bool:
        return self.kind != ErrorModeKind.PANIC

    def __str__(self) -> str:
        if self.kind == ErrorModeKind.CUSTOM_ERROR:
            return f"CustomError({self.error_fn})"
        return {ErrorModeKind.PANIC: "Panic", ErrorModeKind.AUTO_ERROR: "AutoError"}[self.kind]


@dataclass(frozen=True)
class Default:
    """Fallback for an absent value; ``fn`` None means the type's own default."""

    fn: str | None = None

    def __str__(self) -> str:
        return f"default={self.fn}" if self.fn else "default"


class CollectionKind(StrEnum):
    SEQUENCE = auto()
    MAP = auto()


@dataclass(frozen=True)
class Ignore:
    """Field not present on the wire; rebuilt from its default."""

    default_fn: str | None = None

    def __str__(self) -> str:
        return "Ignore"


@dataclass(frozen=True)
class Custom:
    """User functions convert the field.

    A direction without a function uses ``fallback``, the strategy the field
    would have resolved to without custom functions.
    """

    from_fn: str | None
    to_fn: str | None
    fallback: "FieldStrategy | None" = None

    def __str__(self) -> str:
        text = f"Custom(from={self.from_fn}, to={self.to_fn}"
        if self.fallback is not None:
            text += f", fallback={self.fallback}"
        return text + ")"


@dataclass(frozen=True)
class Transparent:
    """Native type wraps the wire value directly."""

    def __str__(self) -> str:
        return "Transparent"


@dataclass(frozen=True)
class Direct:
    """Plain copy; ``convert`` routes through the type's from_proto/to_proto."""

    convert: bool = False

    def __str__(self) -> str:
        return "Direct(convert)" if self.convert else "Direct"


@dataclass(frozen=True)
class OptionUnwrap:
    """Wire and native presence differ, or a default must be reachable."""

    error_mode: ErrorMode
    default: Default | None = None

    def __str__(self) -> str:
        if self.default is not None:
            return f"OptionUnwrap({self.error_mode}, {self.default})"
        return f"OptionUnwrap({self.error_mode})"


@dataclass(frozen=True)
class Collection:
    """Element-wise conversion of a sequence or map."""

    kind: CollectionKind
    inner: "FieldStrategy"
    optional_wrapper: bool = False
    default: Default | None = None

    def __str__(self) -> str:
        text = f"Collection({self.kind}, {self.inner}"
        if self.optional_wrapper:
            text += ", optional"
        if self.default is not None:
            text += f", {self.default}"
        return text + ")"


FieldStrategy = Ignore | Custom | Transparent | Direct | OptionUnwrap | Collection


@dataclass(frozen=True)
class ResolvedField:
    """A field together with everything decided about it."""

    field: FieldSchema
    classification: Classification
    wire_optional: bool
    strategy: FieldStrategy
    rule: str

    @property
    def name(self) -> str:
        return self.field.name

    @property
    def native_optional(self) -> bool:
        return self.classification.is_nullable


Rule = Callable[["StrategyResolver", FieldSchema, Classification, bool], tuple[FieldStrategy, str] | None]


class StrategyResolver:
    """Resolve each field of one struct to exactly one strategy."""

    def __init__(
        self,
        struct: StructSchema,
        classifier: TypeClassifier,
        tracer: DiagnosticsTracer = NULL_TRACER,
    ):
        self.struct = struct
        self.classifier = classifier
        self.tracer = tracer
        self._ignored = frozenset(struct.ignore_fields)

    def resolve(self, f: FieldSchema) -> ResolvedField:
        """Resolve one field; raises ConfigurationError on conflicting directives."""
        self._check_conflicts(f)
        classification = self.classifier.classify(f.type)
        wire_optional = self.wire_optional(f)

        strategy, rule = self._apply(RULES, f, classification, wire_optional)
        self.tracer.decision(self.struct.name, f.name, str(strategy), rule)
        return ResolvedField(f, classification, wire_optional, strategy, rule)

    def resolve_all(self) -> list[ResolvedField]:
        """Resolve every field in declaration order, reporting all conflicts at once."""
        resolved: list[ResolvedField] = []
        errors: list[ConfigurationError] = []
        for f in self.struct.fields:
            try:
                resolved.append(self.resolve(f))
            except ConfigurationError as e:
                errors.append(e)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ConfigurationError("\n".join(str(e) for e in errors), self.struct.name)
        return resolved

    @staticmethod
    def wire_optional(f: FieldSchema) -> bool:
        """Wire-side presence; a manual override beats the inferred value."""
        if f.directives.proto_optional:
            return True
        if f.directives.proto_required:
            return False
        return f.wire_optional

    def _apply(
        self,
        rules: tuple[Rule, ...],
        f: FieldSchema,
        classification: Classification,
        wire_optional: bool,
    ) -> tuple[FieldStrategy, str]:
        for rule in rules:
            result = rule(self, f, classification, wire_optional)
            if result is not None:
                return result
        raise AssertionError("direct rule always matches")

    def _check_conflicts(self, f: FieldSchema) -> None:
        d = f.directives
        if d.proto_optional and d.proto_required:
            raise ConfigurationError(
                "cannot specify both proto_optional and proto_required", self.struct.name, f.name
            )
        if d.default and d.default_fn is not None:
            raise ConfigurationError(
                "cannot specify both 'default' and 'default_fn'", self.struct.name, f.name
            )
        if d.error_fn is not None and self.struct.error_type is None:
            raise ConfigurationError(
                f"error_fn '{d.error_fn}' requires a struct-level error_type",
                self.struct.name,
                f.name,
            )

    def _error_mode(self, f: FieldSchema) -> ErrorMode:
        expect = f.directives.expect
        if expect == ExpectMode.ERROR:
            if self.struct.error_type is None:
                return ErrorMode.auto_error()
            error_fn = f.directives.error_fn or self.struct.error_fn
            if error_fn is None:
                raise ConfigurationError(
                    f"struct declares error_type '{self.struct.error_type}' but neither the field "
                    "nor the struct provides an error_fn",
                    self.struct.name,
                    f.name,
                )
            return ErrorMode.custom_error(error_fn)
        # @expect(panic), or no expect at all: an absent value cannot be represented
        return ErrorMode.panic()

    def _element(self, f: FieldSchema, classification: Classification) -> FieldStrategy:
        """Resolve a collection element with the same table and no directives."""
        element = classification.element
        element_field = FieldSchema(name=f"{f.name}[]", type=element.type)
        strategy, rule = self._apply(RULES, element_field, element, False)
        self.tracer.decision(self.struct.name, element_field.name, str(strategy), rule)
        return strategy

    # -- decision table rows --

    def _rule_ignore(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        if f.directives.ignore:
            return Ignore(f.directives.default_function), "field marked @ignore"
        if f.name in self._ignored:
            return Ignore(f.directives.default_function), "field listed in struct proto_ignore"
        return None

    def _rule_custom(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        d = f.directives
        if not d.has_custom_fn or d.transparent:
            return None

        if d.from_proto_fn is not None and d.to_proto_fn is not None:
            return Custom(d.from_proto_fn, d.to_proto_fn), "bidirectional custom functions"

        fallback, fallback_rule = self._apply(FALLBACK_RULES, f, c, wire_optional)
        missing = "from_proto" if d.from_proto_fn is None else "to_proto"
        return (
            Custom(d.from_proto_fn, d.to_proto_fn, fallback),
            f"one custom function; {missing} falls back to {fallback} ({fallback_rule})",
        )

    def _rule_transparent(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        d = f.directives
        if not d.transparent:
            return None
        if d.has_custom_fn:
            logger.warning(
                "%s.%s: transparent overrides from_proto_fn/to_proto_fn, functions ignored",
                self.struct.name,
                f.name,
            )
            return Transparent(), "transparent wrapper (custom functions ignored)"
        return Transparent(), "transparent wrapper"

    def _rule_collection(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        base = c.unwrap()
        if not base.is_collection:
            return None

        kind = CollectionKind.SEQUENCE if base.kind == Kind.SEQUENCE else CollectionKind.MAP
        default = Default(f.directives.default_function) if f.directives.has_default else None
        strategy = Collection(kind, self._element(f, base), c.is_nullable, default)
        rationale = f"{kind} collection" + (" in nullable wrapper" if c.is_nullable else "")
        return strategy, rationale

    def _rule_default(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        d = f.directives
        if not d.has_default:
            return None
        return (
            OptionUnwrap(self._error_mode(f), Default(d.default_function)),
            "default directive forces unwrap with fallback",
        )

    def _rule_optionality(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        native_optional = c.is_nullable
        if native_optional == wire_optional:
            return None
        if native_optional:
            # the wire value is always present, nothing can go missing
            return OptionUnwrap(ErrorMode.panic()), "wire required, native optional"
        return OptionUnwrap(self._error_mode(f)), "wire optional, native required"

    def _rule_direct(
        self, f: FieldSchema, c: Classification, wire_optional: bool
    ) -> tuple[FieldStrategy, str] | None:
        base = c.unwrap()
        if base.needs_conversion:
            return Direct(convert=True), f"matching presence, {base.kind} converts itself"
        return Direct(), f"matching presence, {base.kind} copied as is"


RULES: tuple[Rule, ...] = (
    StrategyResolver._rule_ignore,
    StrategyResolver._rule_custom,
    StrategyResolver._rule_transparent,
    StrategyResolver._rule_collection,
    StrategyResolver._rule_default,
    StrategyResolver._rule_optionality,
    StrategyResolver._rule_direct,
)

# what a field resolves to once its custom functions are set aside
FALLBACK_RULES: tuple[Rule, ...] = RULES[2:]


def iter_error_modes(strategy: FieldStrategy):
    """Yield every error mode reachable from the wire to native direction.

    A custom fallback only counts when no from_proto_fn replaces it.
    """
    if isinstance(strategy, OptionUnwrap):
        yield strategy.error_mode
    elif isinstance(strategy, Custom) and strategy.from_fn is None and strategy.fallback is not None:
        yield from iter_error_modes(strategy.fallback)
    elif isinstance(strategy, Collection):
        yield from iter_error_modes(strategy.inner)
