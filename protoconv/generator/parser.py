"""Declaration file parser using Lark."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, TypeVar

from lark import Lark
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer

from .types import (
    Declaration,
    Declarations,
    EnumSchema,
    EnumValueSchema,
    ExpectMode,
    FieldDirectives,
    FieldSchema,
    NewtypeSchema,
    StructSchema,
    TypeRef,
)

logger = logging.getLogger(__name__)

_g_parser: Lark | None = None


class ValidationError(RuntimeError):
    """Raised when a declaration file is malformed or inconsistent."""


@dataclass
class _Annotation:
    name: str
    arguments: list[str] = field(default_factory=list)


@dataclass
class _Doc:
    value: str


@dataclass
class _Import:
    value: str


@dataclass
class _Module:
    value: str


@dataclass
class _Field:
    name: str
    type: TypeRef
    annotations: list[_Annotation]
    doc: str | None


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise RuntimeError(f"Found more than one {class_type}")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


def _split_dotted(path: str) -> tuple[str | None, str]:
    module, _, name = path.rpartition(".")
    return module or None, name


class TreeTransformer(Transformer):
    """Transform parse tree into raw declarations."""

    def annotation(self, args: list[Any]) -> _Annotation:
        return _Annotation(name=str(args[0]), arguments=[str(a) for a in args[1:]])

    def doc(self, args: list[Any]) -> _Doc:
        return _Doc(value="\n".join(str(line)[2:].strip() for line in args))

    def dotted(self, args: list[Any]) -> str:
        return ".".join(str(part) for part in args)

    def string(self, args: list[Any]) -> str:
        return str(args[0])[1:-1]

    def import_stmt(self, args: list[Any]) -> _Import:
        return _Import(value=str(args[0]).strip())

    def module_stmt(self, args: list[Any]) -> _Module:
        return _Module(value=args[0])

    def type(self, args: list[Any]) -> TypeRef:
        module, name = _split_dotted(args[0])
        return TypeRef(name=name, args=list(args[1:]), module=module)

    def enum_value(self, args: list[Any]) -> EnumValueSchema:
        names = [a for a in args if not isinstance(a, _Doc)]
        return EnumValueSchema(name=str(names[0]), value=int(names[1]))

    def enum(self, args: list[Any]) -> EnumSchema:
        name = str(next(a for a in args if _is_token(a)))
        _struct_level(name, _filter(args, _Annotation), allowed=_ENUM_ANNOTATIONS)
        return EnumSchema(
            name=name,
            values=_filter(args, EnumValueSchema),
            comment=_find_one(args, _Doc),
        )

    def newtype(self, args: list[Any]) -> NewtypeSchema:
        name = str(next(a for a in args if _is_token(a)))
        return NewtypeSchema(name=name, type=_find_one(args, TypeRef), comment=_find_one(args, _Doc))

    def field(self, args: list[Any]) -> _Field:
        name = str(next(a for a in args if _is_token(a)))
        return _Field(
            name=name,
            type=_find_one(args, TypeRef),
            annotations=_filter(args, _Annotation),
            doc=_find_one(args, _Doc),
        )

    def struct(self, args: list[Any]) -> StructSchema:
        name = str(next(a for a in args if _is_token(a)))
        directives = _struct_level(name, _filter(args, _Annotation), allowed=_STRUCT_ANNOTATIONS)

        fields = []
        for f in _filter(args, _Field):
            field_directives = _field_directives(name, f)
            fields.append(
                FieldSchema(
                    name=f.name,
                    type=f.type,
                    directives=field_directives,
                    wire_optional=infer_wire_optional(f.type, field_directives),
                    comment=f.doc,
                )
            )

        return StructSchema(
            name=name,
            fields=fields,
            wire_module=directives.get("module"),
            wire_name=directives.get("proto_name"),
            error_type=directives.get("error_type"),
            error_fn=directives.get("error_fn"),
            ignore_fields=directives.get("proto_ignore", []),
            comment=_find_one(args, _Doc),
        )


def _is_token(value: Any) -> bool:
    return isinstance(value, str)


# enums convert by number, no wire path is involved
_ENUM_ANNOTATIONS: frozenset[str] = frozenset()
_STRUCT_ANNOTATIONS = frozenset(["module", "proto_name", "error_type", "error_fn", "proto_ignore"])

_FIELD_FLAGS = frozenset(["ignore", "transparent", "proto_optional", "proto_required"])
_FIELD_VALUES = frozenset(
    ["proto_name", "from_proto_fn", "to_proto_fn", "error_fn", "default_fn"]
)


def _struct_level(owner: str, annotations: list[_Annotation], allowed: frozenset[str]) -> dict[str, Any]:
    directives: dict[str, Any] = {}
    for a in annotations:
        if a.name not in allowed:
            raise ValidationError(f"{owner}: unknown annotation @{a.name}")
        if a.name in directives:
            raise ValidationError(f"{owner}: @{a.name} given more than once")
        if a.name == "proto_ignore":
            names = [n.strip() for arg in a.arguments for n in arg.split(",")]
            directives[a.name] = [n for n in names if n]
            continue
        if len(a.arguments) != 1:
            raise ValidationError(f"{owner}: @{a.name} takes exactly one argument")
        directives[a.name] = a.arguments[0]
    return directives


def _field_directives(struct: str, f: _Field) -> FieldDirectives:
    values: dict[str, Any] = {}
    where = f"{struct}.{f.name}"

    for a in f.annotations:
        if a.name in values:
            raise ValidationError(f"{where}: @{a.name} given more than once")

        if a.name in _FIELD_FLAGS:
            if a.arguments:
                raise ValidationError(f"{where}: @{a.name} takes no arguments")
            values[a.name] = True
        elif a.name in _FIELD_VALUES:
            if len(a.arguments) != 1:
                raise ValidationError(f"{where}: @{a.name} takes exactly one argument")
            values[a.name] = a.arguments[0]
        elif a.name == "expect":
            if len(a.arguments) > 1:
                raise ValidationError(f"{where}: @expect takes at most one argument")
            mode = a.arguments[0] if a.arguments else ExpectMode.ERROR
            try:
                values["expect"] = ExpectMode(mode)
            except ValueError:
                raise ValidationError(
                    f"{where}: @expect mode must be 'panic' or 'error', got '{mode}'"
                ) from None
        elif a.name == "default":
            if len(a.arguments) > 1:
                raise ValidationError(f"{where}: @default takes at most one argument")
            values["default"] = True
            if a.arguments:
                values["default_ref"] = a.arguments[0]
        else:
            raise ValidationError(f"{where}: unknown annotation @{a.name}")

    return FieldDirectives(**values)


def infer_wire_optional(t: TypeRef, directives: FieldDirectives) -> bool:
    """Guess wire-side presence when no wire schema is at hand."""
    if directives.proto_optional:
        return True
    if directives.proto_required:
        return False
    if t.is_nullable:
        inner = t.args[0]
        return not (inner.is_sequence or inner.is_map)
    if t.is_sequence or t.is_map:
        return False
    if directives.expect is not None or directives.has_default:
        return True
    return False


def _module(items: list[Any]) -> str | None:
    modules = _filter(items, _Module)
    if len(modules) > 1:
        raise ValidationError("module declared more than once")
    return modules[0].value if modules else None


def validate(items: list[Declaration]) -> None:
    """Validate parsed declarations."""
    names: set[str] = set()
    for item in items:
        if item.name in names:
            raise ValidationError(f"{item.name} declared more than once")
        names.add(item.name)

        if isinstance(item, EnumSchema):
            member_names = [v.name for v in item.values]
            dupes = {n for n in member_names if member_names.count(n) > 1}
            if dupes:
                raise ValidationError(f"{item.name}: duplicate enum values {sorted(dupes)}")
            if not item.values:
                raise ValidationError(f"{item.name}: enum has no values")

        if isinstance(item, StructSchema):
            field_names = [f.name for f in item.fields]
            dupes = {n for n in field_names if field_names.count(n) > 1}
            if dupes:
                raise ValidationError(f"{item.name}: duplicate fields {sorted(dupes)}")


def parse(text: str) -> Declarations:
    """Parse a declaration file.

    Enums are not registered here; compile_declarations registers them as it
    walks the items, so a struct only sees enums declared above it.
    """
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/protodef.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar)

    try:
        tree = _g_parser.parse(text)
    except UnexpectedInput as e:
        raise ValidationError(f"Syntax error at line {e.line}, column {e.column}") from e

    try:
        items = TreeTransformer().transform(tree).children
    except VisitError as e:
        if isinstance(e.orig_exc, ValidationError):
            raise e.orig_exc from None
        raise

    declarations = Declarations(
        items=[i for i in items if isinstance(i, (EnumSchema, NewtypeSchema, StructSchema))],
        imports=[i.value for i in _filter(items, _Import)],
        wire_module=_module(items),
    )
    validate(declarations.items)

    logger.debug(
        "Parsed %d enums, %d newtypes, %d structs",
        len(declarations.enums),
        len(declarations.newtypes),
        len(declarations.structs),
    )
    return declarations
