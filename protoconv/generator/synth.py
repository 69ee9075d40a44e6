"""Python source fragments for each field strategy.

``from_proto`` fragments are statements assigning one ``_val_<field>`` local
per field, in declaration order. ``to_proto`` fragments are keyword argument
expressions for the wire constructor; ignored fields produce none.
"""

from dataclasses import dataclass, field

from .classify import Classification, Kind
from .error_mode import ConversionMode, ErrorAnalysis, ErrorTypeDecl
from .strategy import (
    Collection,
    CollectionKind,
    ConfigurationError,
    Custom,
    Default,
    Direct,
    ErrorMode,
    ErrorModeKind,
    FieldStrategy,
    Ignore,
    OptionUnwrap,
    ResolvedField,
    Transparent,
)
from .trace import NULL_TRACER, DiagnosticsTracer
from .types import PRIMITIVE_TYPE_MAP, StructSchema, TypeRef

MESSAGE = "message"

_PRIMITIVE_DEFAULTS = {
    "bool": "False",
    "int": "0",
    "float": "0.0",
    "str": '""',
    "bytes": 'b""',
}

_LITERALS = frozenset(["None", *_PRIMITIVE_DEFAULTS.values()])
_FACTORIES = {"[]": "list", "{}": "dict"}

# name of dataclasses.field in generated modules
FIELD_FUNCTION = "_field"


def native_annotation(t: TypeRef) -> str:
    """Annotation for a native type in generated code."""
    if t.is_nullable:
        return f"{native_annotation(t.args[0])} | None"
    if t.module is None and t.name in PRIMITIVE_TYPE_MAP:
        return PRIMITIVE_TYPE_MAP[t.name]
    if t.is_sequence:
        return f"list[{native_annotation(t.args[0])}]"
    if t.is_map:
        key, value = t.args
        return f"dict[{native_annotation(key)}, {native_annotation(value)}]"
    return str(t)


def native_default(c: Classification) -> str:
    """Expression for the default value of a native type."""
    if c.kind == Kind.NULLABLE:
        return "None"
    if c.kind == Kind.PRIMITIVE:
        return _PRIMITIVE_DEFAULTS.get(PRIMITIVE_TYPE_MAP.get(c.type.name, ""), "None")
    if c.kind == Kind.SEQUENCE:
        return "[]"
    if c.kind == Kind.MAP:
        return "{}"
    if c.kind == Kind.ENUM:
        return f"next(iter({c.type}))"
    return f"{c.type}()"


def wire_default(c: Classification) -> str:
    """Expression for the wire value sent when a native value is absent."""
    if c.kind == Kind.ENUM:
        return "0"
    if c.kind == Kind.CUSTOM:
        return "None"
    return native_default(c)


def convert_from(c: Classification, expr: str) -> str:
    if c.needs_conversion:
        return f"{c.type}.from_proto({expr})"
    return expr


def convert_to(c: Classification, expr: str) -> str:
    if c.needs_conversion:
        return f"{expr}.to_proto()"
    return expr


@dataclass(frozen=True)
class FieldFragments:
    """Generated code for one field."""

    name: str
    strategy: FieldStrategy
    annotation: str
    from_proto: list[str]
    to_proto: str | None
    declaration_default: str | None = None
    wire_name: str | None = None

    @property
    def text(self) -> str:
        lines = list(self.from_proto)
        if self.to_proto is not None:
            lines.append(f"to_proto: {self.wire_name}={self.to_proto}")
        return "\n".join(lines)


@dataclass
class ConversionUnit:
    """Both conversion routines of one struct."""

    struct: StructSchema
    wire_module: str
    mode: ConversionMode
    fields: list[ResolvedField]
    fragments: list[FieldFragments]
    error_decl: ErrorTypeDecl | None = None
    runtime_names: set[str] = field(default_factory=set)

    @property
    def name(self) -> str:
        return self.struct.name

    @property
    def wire_type(self) -> str:
        return f"{self.wire_module}.{self.struct.wire_type_name}"

    @property
    def from_proto_lines(self) -> list[str]:
        return [line for fragment in self.fragments for line in fragment.from_proto]

    @property
    def constructor_arguments(self) -> list[str]:
        return [f"{fragment.name}=_val_{fragment.name}" for fragment in self.fragments]

    @property
    def to_proto_arguments(self) -> list[str]:
        return [
            f"{fragment.wire_name}={fragment.to_proto}"
            for fragment in self.fragments
            if fragment.to_proto is not None
        ]


class CodeSynthesizer:
    """Turn one struct's resolved fields into a ConversionUnit."""

    def __init__(
        self,
        struct: StructSchema,
        analysis: ErrorAnalysis,
        wire_module: str,
        tracer: DiagnosticsTracer = NULL_TRACER,
    ):
        self.struct = struct
        self.analysis = analysis
        self.wire_module = wire_module
        self.tracer = tracer
        self.runtime_names: set[str] = set()

    def synthesize(self) -> ConversionUnit:
        fragments = []
        for rf in self.analysis.fields:
            fragment = self.field(rf)
            self.tracer.generated(self.struct.name, rf.name, fragment.text, str(rf.strategy))
            fragments.append(fragment)

        if self.analysis.mode.fallible and self.analysis.error_decl is not None:
            self.runtime_names.add("ConversionError")

        return ConversionUnit(
            struct=self.struct,
            wire_module=self.wire_module,
            mode=self.analysis.mode,
            fields=self.analysis.fields,
            fragments=fragments,
            error_decl=self.analysis.error_decl,
            runtime_names=self.runtime_names,
        )

    def field(self, rf: ResolvedField) -> FieldFragments:
        strategy = rf.strategy
        return FieldFragments(
            name=rf.name,
            strategy=strategy,
            annotation=native_annotation(rf.field.type),
            from_proto=self._from_lines(rf, strategy),
            to_proto=self._to_expr(rf, strategy),
            declaration_default=self._declaration_default(rf),
            wire_name=rf.field.wire_name,
        )

    def _read(self, rf: ResolvedField) -> str:
        if rf.wire_optional:
            self.runtime_names.add("wire_field")
            return f'wire_field({MESSAGE}, "{rf.field.wire_name}")'
        return f"{MESSAGE}.{rf.field.wire_name}"

    def _default_value(self, default: Default | None, c: Classification) -> str:
        if default is not None and default.fn is not None:
            return f"{default.fn}()"
        return native_default(c)

    def _declaration_default(self, rf: ResolvedField) -> str | None:
        if isinstance(rf.strategy, Ignore):
            if rf.strategy.default_fn is not None:
                return f"{FIELD_FUNCTION}(default_factory={rf.strategy.default_fn})"
            value = native_default(rf.classification)
            if value in _LITERALS:
                return value
            if value in _FACTORIES:
                return f"{FIELD_FUNCTION}(default_factory={_FACTORIES[value]})"
            return f"{FIELD_FUNCTION}(default_factory=lambda: {value})"
        if rf.classification.is_nullable:
            return "None"
        return None

    def _absent_action(self, rf: ResolvedField, mode: ErrorMode) -> str:
        wire_name = rf.field.wire_name
        if mode.kind == ErrorModeKind.PANIC:
            self.runtime_names.add("ConversionPanic")
            return f'raise ConversionPanic("Proto field {wire_name} is required")'
        if mode.kind == ErrorModeKind.AUTO_ERROR:
            return f'raise {self.analysis.mode.error_type}.missing_field("{wire_name}")'
        return f'raise {mode.error_fn}("{wire_name}")'

    # -- wire to native --

    def _from_lines(self, rf: ResolvedField, strategy: FieldStrategy) -> list[str]:
        val = f"_val_{rf.name}"
        raw = f"_raw_{rf.name}"
        c = rf.classification
        base = c.unwrap()

        if isinstance(strategy, Ignore):
            return [f"{val} = {self._default_value(Default(strategy.default_fn), c)}"]

        if isinstance(strategy, Custom):
            if strategy.from_fn is not None:
                return [f"{val} = {strategy.from_fn}({self._read(rf)})"]
            return self._from_lines(rf, strategy.fallback)

        if isinstance(strategy, Transparent):
            if c.is_nullable:
                return [f"{raw} = {self._read(rf)}", f"{val} = None if {raw} is None else {base.type}({raw})"]
            return [f"{val} = {base.type}({self._read(rf)})"]

        if isinstance(strategy, Direct):
            if c.is_nullable and base.needs_conversion:
                return [
                    f"{raw} = {self._read(rf)}",
                    f"{val} = None if {raw} is None else {convert_from(base, raw)}",
                ]
            return [f"{val} = {convert_from(base, self._read(rf))}"]

        if isinstance(strategy, OptionUnwrap):
            if strategy.default is not None:
                fallback = self._default_value(strategy.default, c)
                return [
                    f"{raw} = {self._read(rf)}",
                    f"{val} = {fallback} if {raw} is None else {convert_from(base, raw)}",
                ]
            if c.is_nullable:
                # wire value is always present
                return [f"{val} = {convert_from(base, self._read(rf))}"]
            return [
                f"{raw} = {self._read(rf)}",
                f"if {raw} is None:",
                f"    {self._absent_action(rf, strategy.error_mode)}",
                f"{val} = {convert_from(base, raw)}",
            ]

        if isinstance(strategy, Collection):
            comp = self._collection_from(strategy, base, raw, 0)
            lines = [f"{raw} = {self._read(rf)}"]
            if strategy.default is not None:
                fallback = self._default_value(strategy.default, c)
                lines.append(f"{val} = {fallback} if not {raw} else {comp}")
            elif strategy.optional_wrapper:
                lines.append(f"{val} = None if not {raw} else {comp}")
            elif rf.wire_optional:
                lines.append(f"{val} = {native_default(base)} if {raw} is None else {comp}")
            else:
                lines.append(f"{val} = {comp}")
            return lines

        raise ConfigurationError(f"no code generator for {strategy}", self.struct.name, rf.name)

    def _element_from(self, strategy: FieldStrategy, c: Classification, expr: str, depth: int) -> str:
        if isinstance(strategy, Collection):
            comp = self._collection_from(strategy, c.unwrap(), expr, depth)
            if strategy.optional_wrapper:
                return f"(None if not {expr} else {comp})"
            return comp
        if isinstance(strategy, (Direct, OptionUnwrap)):
            return convert_from(c.unwrap(), expr)
        raise ConfigurationError(f"unsupported element strategy {strategy}", self.struct.name)

    def _collection_from(self, strategy: Collection, base: Classification, src: str, depth: int) -> str:
        item = f"_item{depth}"
        inner = self._element_from(strategy.inner, base.element, item, depth + 1)
        if strategy.kind == CollectionKind.SEQUENCE:
            if inner == item:
                return f"list({src})"
            return f"[{inner} for {item} in {src}]"
        key = f"_key{depth}"
        key_expr = convert_from(base.key.unwrap(), key)
        if inner == item and key_expr == key:
            return f"dict({src})"
        return f"{{{key_expr}: {inner} for {key}, {item} in {src}.items()}}"

    # -- native to wire --

    def _to_expr(self, rf: ResolvedField, strategy: FieldStrategy) -> str | None:
        attr = f"self.{rf.name}"
        c = rf.classification
        base = c.unwrap()

        if isinstance(strategy, Ignore):
            return None

        if isinstance(strategy, Custom):
            if strategy.to_fn is not None:
                return f"{strategy.to_fn}({attr})"
            return self._to_expr(rf, strategy.fallback)

        if isinstance(strategy, Transparent):
            self.runtime_names.add("transparent_inner")
            if c.is_nullable:
                return f"None if {attr} is None else transparent_inner({attr})"
            return f"transparent_inner({attr})"

        if isinstance(strategy, (Direct, OptionUnwrap)):
            conv = convert_to(base, attr)
            if not c.is_nullable:
                return conv
            if not rf.wire_optional:
                return f"{wire_default(base)} if {attr} is None else {conv}"
            if conv == attr:
                return attr
            return f"None if {attr} is None else {conv}"

        if isinstance(strategy, Collection):
            comp = self._collection_to(strategy, base, attr, 0)
            if strategy.optional_wrapper:
                return f"{native_default(base)} if {attr} is None else {comp}"
            return comp

        raise ConfigurationError(f"no code generator for {strategy}", self.struct.name, rf.name)

    def _element_to(self, strategy: FieldStrategy, c: Classification, expr: str, depth: int) -> str:
        base = c.unwrap()
        if isinstance(strategy, Collection):
            comp = self._collection_to(strategy, base, expr, depth)
            if strategy.optional_wrapper:
                return f"({native_default(base)} if {expr} is None else {comp})"
            return comp
        if isinstance(strategy, OptionUnwrap) and c.is_nullable:
            return f"({wire_default(base)} if {expr} is None else {convert_to(base, expr)})"
        if isinstance(strategy, (Direct, OptionUnwrap)):
            return convert_to(base, expr)
        raise ConfigurationError(f"unsupported element strategy {strategy}", self.struct.name)

    def _collection_to(self, strategy: Collection, base: Classification, src: str, depth: int) -> str:
        item = f"_item{depth}"
        inner = self._element_to(strategy.inner, base.element, item, depth + 1)
        if strategy.kind == CollectionKind.SEQUENCE:
            if inner == item:
                return f"list({src})"
            return f"[{inner} for {item} in {src}]"
        key = f"_key{depth}"
        key_expr = convert_to(base.key.unwrap(), key)
        if inner == item and key_expr == key:
            return f"dict({src})"
        return f"{{{key_expr}: {inner} for {key}, {item} in {src}.items()}}"
