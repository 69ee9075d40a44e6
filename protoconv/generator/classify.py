"""Classification of native field types."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum, auto

from .types import DEFAULT_WIRE_MODULE, PRIMITIVE_TYPES, TypeRef


class Kind(StrEnum):
    """The shape of a native type as far as conversion is concerned."""

    PRIMITIVE = auto()
    NULLABLE = auto()
    SEQUENCE = auto()
    MAP = auto()
    WIRE = auto()
    ENUM = auto()
    CUSTOM = auto()


@dataclass(frozen=True)
class Classification:
    """Result of classifying one type.

    ``inner`` holds the classified arguments: one for NULLABLE and SEQUENCE,
    key and value for MAP, none otherwise.
    """

    kind: Kind
    type: TypeRef
    inner: tuple["Classification", ...] = ()

    def __str__(self) -> str:
        if not self.inner:
            return f"{self.kind}({self.type})"
        return f"{self.kind}({', '.join(str(c) for c in self.inner)})"

    @property
    def is_nullable(self) -> bool:
        return self.kind == Kind.NULLABLE

    @property
    def is_collection(self) -> bool:
        return self.kind in (Kind.SEQUENCE, Kind.MAP)

    @property
    def needs_conversion(self) -> bool:
        """True for types converted through their own from_proto/to_proto."""
        return self.kind in (Kind.ENUM, Kind.CUSTOM)

    def unwrap(self) -> "Classification":
        """Strip one nullable wrapper, if any."""
        return self.inner[0] if self.is_nullable else self

    @property
    def element(self) -> "Classification":
        """Element of a sequence, value of a map."""
        if not self.is_collection:
            raise ValueError(f"{self} is not a collection")
        return self.inner[-1]

    @property
    def key(self) -> "Classification":
        """Key of a map."""
        if self.kind != Kind.MAP:
            raise ValueError(f"{self} is not a map")
        return self.inner[0]


class EnumRegistry:
    """Names of enums seen so far in one compilation session.

    Append-only. A struct can only see enums registered before it is
    compiled; an enum declared later classifies as a custom type.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: list[str] = []
        for name in names:
            self.register(name)

    def register(self, name: str) -> None:
        if name not in self._names:
            self._names.append(name)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"EnumRegistry({self._names!r})"


class TypeClassifier:
    """Classify native types against the primitive set, wire module and enum registry."""

    def __init__(
        self,
        registry: EnumRegistry,
        primitive_types: frozenset[str] = PRIMITIVE_TYPES,
        wire_module: str = DEFAULT_WIRE_MODULE,
    ):
        self.registry = registry
        self.primitive_types = primitive_types
        self.wire_module = wire_module

    def classify(self, t: TypeRef) -> Classification:
        """Classify a type; total, every type maps to exactly one kind."""
        if t.module is None and t.name in self.primitive_types:
            return Classification(Kind.PRIMITIVE, t)

        if t.is_nullable:
            return Classification(Kind.NULLABLE, t, (self.classify(t.args[0]),))

        if t.is_sequence:
            return Classification(Kind.SEQUENCE, t, (self.classify(t.args[0]),))

        if t.is_map:
            key, value = t.args
            return Classification(Kind.MAP, t, (self.classify(key), self.classify(value)))

        if t.module is not None and t.module == self.wire_module:
            return Classification(Kind.WIRE, t)

        if t.name in self.registry:
            return Classification(Kind.ENUM, t)

        return Classification(Kind.CUSTOM, t)
