"""Python code generator for conversion modules."""

from importlib import resources

from jinja2 import Environment, PackageLoader

from .classify import EnumRegistry
from .engine import compile_declarations
from .synth import ConversionUnit, FieldFragments, native_annotation
from .trace import DiagnosticsTracer
from .types import Declarations, EngineConfig, EnumSchema, NewtypeSchema

RUNTIME_FILES = [
    "__init__.py",
    "errors.py",
    "access.py",
]

env = Environment(
    loader=PackageLoader("protoconv.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")


def _declaration(fragment: FieldFragments) -> str:
    """Dataclass field line for one field."""
    line = f"{fragment.name}: {fragment.annotation}"
    if fragment.declaration_default is not None:
        line += f" = {fragment.declaration_default}"
    return line


def _docstring(text: str | None) -> str | None:
    if not text:
        return None
    return text.replace('"""', '\\"\\"\\"').replace("\n", "\n    ")


def _items(declarations: Declarations, units: list[ConversionUnit]) -> list[tuple[str, object]]:
    by_name = {unit.name: unit for unit in units}
    items: list[tuple[str, object]] = []
    for item in declarations.items:
        if isinstance(item, EnumSchema):
            items.append(("enum", item))
        elif isinstance(item, NewtypeSchema):
            items.append(("newtype", item))
        else:
            items.append(("struct", by_name[item.name]))
    return items


def render(
    declarations: Declarations,
    config: EngineConfig | None = None,
    runtime_import: str = "protoconv.runtime",
    tracer: DiagnosticsTracer | None = None,
) -> str:
    """Render a declaration file to Python source code.

    Raises ConfigurationError, with every failing struct's message, if any
    struct cannot be compiled.
    """
    result = compile_declarations(declarations, config, EnumRegistry(), tracer)
    result.raise_for_failures()

    runtime_names: set[str] = set()
    for unit in result.units:
        runtime_names |= unit.runtime_names

    return template.render(
        imports=declarations.imports,
        wire_modules=sorted({unit.wire_module for unit in result.units}),
        items=_items(declarations, result.units),
        runtime_import=runtime_import,
        runtime_names=sorted(runtime_names),
        declaration=_declaration,
        docstring=_docstring,
        annotation=native_annotation,
    )


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("protoconv.runtime").joinpath(filename).read_text()
        result[filename] = content
    return result
