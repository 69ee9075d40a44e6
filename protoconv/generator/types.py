"""Schema definitions consumed by the conversion engine."""

from dataclasses import dataclass, field
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

DEFAULT_WIRE_MODULE = "proto"
DEFAULT_CONVERSION_ERROR_SUFFIX = "ConversionError"

NULLABLE_WRAPPERS = frozenset(["Optional"])
SEQUENCE_WRAPPERS = frozenset(["list", "List", "Sequence"])
MAP_WRAPPERS = frozenset(["dict", "Dict", "Mapping"])


class ExpectMode(StrEnum):
    """How a missing wire value is reported when the native side requires it."""

    ERROR = auto()  # bare @expect / @expect(error)
    PANIC = auto()  # @expect(panic)


@dataclass(frozen=True)
class TypeRef(DataClassJsonMixin):
    """A native type as written in a declaration.

    ``module`` is set for dotted references such as ``proto.Header``; ``args``
    holds generic arguments (``Optional[T]``, ``list[T]``, ``dict[K, V]``).
    """

    name: str
    args: list["TypeRef"] = field(default_factory=list)
    module: str | None = None

    def __str__(self) -> str:
        base = f"{self.module}.{self.name}" if self.module else self.name
        if not self.args:
            return base
        return f"{base}[{', '.join(str(arg) for arg in self.args)}]"

    @property
    def is_nullable(self) -> bool:
        return self.name in NULLABLE_WRAPPERS and len(self.args) == 1

    @property
    def is_sequence(self) -> bool:
        return self.name in SEQUENCE_WRAPPERS and len(self.args) == 1

    @property
    def is_map(self) -> bool:
        return self.name in MAP_WRAPPERS and len(self.args) == 2


@dataclass(frozen=True)
class FieldDirectives(DataClassJsonMixin):
    """Per-field directives, stored exactly as written.

    Conflicting combinations are kept; the strategy resolver reports them.
    """

    ignore: bool = False
    from_proto_fn: str | None = None
    to_proto_fn: str | None = None
    transparent: bool = False
    proto_name: str | None = None
    proto_optional: bool = False
    proto_required: bool = False
    expect: ExpectMode | None = None
    error_fn: str | None = None
    default: bool = False
    default_ref: str | None = None  # @default("fn")
    default_fn: str | None = None

    @property
    def has_custom_fn(self) -> bool:
        return self.from_proto_fn is not None or self.to_proto_fn is not None

    @property
    def has_default(self) -> bool:
        return self.default or self.default_fn is not None

    @property
    def default_function(self) -> str | None:
        """Function producing the default value, None for the type's own default."""
        return self.default_fn or self.default_ref


@dataclass(frozen=True)
class FieldSchema(DataClassJsonMixin):
    """One struct field as seen by the engine."""

    name: str
    type: TypeRef
    directives: FieldDirectives = field(default_factory=FieldDirectives)
    wire_optional: bool = False
    comment: str | None = None

    @property
    def wire_name(self) -> str:
        return self.directives.proto_name or self.name


@dataclass(frozen=True)
class StructSchema(DataClassJsonMixin):
    """A native struct declaration.

    ``wire_module`` of None means the engine's configured default.
    """

    name: str
    fields: list[FieldSchema]
    wire_module: str | None = None
    wire_name: str | None = None
    error_type: str | None = None
    error_fn: str | None = None
    ignore_fields: list[str] = field(default_factory=list)
    comment: str | None = None

    @property
    def wire_type_name(self) -> str:
        return self.wire_name or self.name


@dataclass(frozen=True)
class EnumValueSchema(DataClassJsonMixin):
    """A single enum member."""

    name: str
    value: int


@dataclass(frozen=True)
class EnumSchema(DataClassJsonMixin):
    """A native enum mirroring a wire enum by number."""

    name: str
    values: list[EnumValueSchema]
    comment: str | None = None


@dataclass(frozen=True)
class NewtypeSchema(DataClassJsonMixin):
    """A single-value wrapper type, usable as a transparent field."""

    name: str
    type: TypeRef
    comment: str | None = None


Declaration = EnumSchema | NewtypeSchema | StructSchema


@dataclass
class Declarations(DataClassJsonMixin):
    """A parsed declaration file, items kept in declaration order."""

    items: list[Declaration] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    wire_module: str | None = None

    @property
    def enums(self) -> list[EnumSchema]:
        return [item for item in self.items if isinstance(item, EnumSchema)]

    @property
    def newtypes(self) -> list[NewtypeSchema]:
        return [item for item in self.items if isinstance(item, NewtypeSchema)]

    @property
    def structs(self) -> list[StructSchema]:
        return [item for item in self.items if isinstance(item, StructSchema)]


PRIMITIVE_TYPES = frozenset(
    [
        "bool",
        "int",
        "float",
        "str",
        "bytes",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "float32",
        "float64",
        "string",
    ]
)

# Python annotation for each primitive name
PRIMITIVE_TYPE_MAP = {
    "bool": "bool",
    "int": "int",
    "float": "float",
    "str": "str",
    "bytes": "bytes",
    "int8": "int",
    "int16": "int",
    "int32": "int",
    "int64": "int",
    "uint8": "int",
    "uint16": "int",
    "uint32": "int",
    "uint64": "int",
    "float32": "float",
    "float64": "float",
    "string": "str",
}


@dataclass(frozen=True)
class EngineConfig:
    """Global engine configuration."""

    primitive_types: frozenset[str] = PRIMITIVE_TYPES
    wire_module: str = DEFAULT_WIRE_MODULE

    def wire_module_for(self, struct: StructSchema) -> str:
        return struct.wire_module or self.wire_module

