"""Command-line interface for protoconv code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from protoconv.generator import parse, python
from protoconv.generator.engine import CompileResult, compile_declarations
from protoconv.generator.parser import ValidationError
from protoconv.generator.strategy import ConfigurationError

if TYPE_CHECKING:
    from protoconv.generator.types import Declarations

logger = logging.getLogger(__name__)


def _fail(message: str) -> NoReturn:
    Console(stderr=True, highlight=False).print(f"[bold red]Error:[/bold red] {escape(message)}")
    sys.exit(1)


def _load(input_file: str) -> Declarations:
    with open(input_file, encoding="utf-8") as f:
        text = f.read()
    try:
        return parse(text)
    except ValidationError as e:
        _fail(f"{input_file}: {e}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Wire/native conversion code generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input declaration file")
@click.option("--output", "-o", "output_file", required=True, help="Output file")
@click.option(
    "--runtime-import",
    "runtime_import",
    is_flag=False,
    flag_value="protoconv.runtime",
    default=None,
    help="Import path for runtime. No value=protoconv.runtime, omit=protoconv_runtime",
)
def gen(input_file: str, output_file: str, runtime_import: str | None) -> None:
    """Generate a conversion module from a declaration file."""
    declarations = _load(input_file)

    # Default to "protoconv_runtime", the folder the runtime command writes
    import_path = runtime_import if runtime_import is not None else "protoconv_runtime"
    try:
        generated_file = python.render(declarations, runtime_import=import_path)
    except ConfigurationError as e:
        _fail(str(e))

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)
    logger.info("Wrote %s", output_file)


@cli.command()
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="protoconv_runtime", help="Runtime folder name")
def runtime(output_path: str, name: str) -> None:
    """Write the runtime package imported by generated code."""
    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content)
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input declaration file")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display the strategy chosen for every field."""
    declarations = _load(input_file)
    result = compile_declarations(declarations)

    if output_json:
        _output_json(declarations, result)
    else:
        _output_plain(declarations, result)

    if not result.ok:
        sys.exit(1)


def _output_json(declarations: Declarations, result: CompileResult) -> None:
    """Output schema and strategies as JSON."""
    data: dict = {
        "module": declarations.wire_module,
        "enums": [enum.to_dict() for enum in declarations.enums],
        "newtypes": [newtype.to_dict() for newtype in declarations.newtypes],
        "structs": {},
        "failures": {failure.name: str(failure.error) for failure in result.failures},
    }

    for unit in result.units:
        data["structs"][unit.name] = {
            "schema": unit.struct.to_dict(),
            "wire_type": unit.wire_type,
            "mode": str(unit.mode),
            "error_type": unit.mode.error_type,
            "fields": [
                {
                    "name": rf.name,
                    "classification": str(rf.classification),
                    "wire_optional": rf.wire_optional,
                    "strategy": str(rf.strategy),
                    "rule": rf.rule,
                }
                for rf in unit.fields
            ],
        }

    print(json.dumps(data, indent=2))


def _output_plain(declarations: Declarations, result: CompileResult) -> None:
    """Output strategies using rich text formatting."""
    console = Console()

    if declarations.enums:
        console.print("[bold cyan]Enums[/bold cyan]")
        enum_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Values", style="dim")
        for enum in declarations.enums:
            enum_table.add_row(enum.name, ", ".join(f"{v.name}={v.value}" for v in enum.values))
        console.print(enum_table)
        console.print()

    for unit in result.units:
        mode = str(unit.mode)
        console.print(f"[bold cyan]{unit.name}[/bold cyan] -> {unit.wire_type}  [dim]{mode}[/dim]")

        table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        table.add_column("Field", style="white")
        table.add_column("Type", style="yellow")
        table.add_column("Classification", style="dim")
        table.add_column("Wire", style="dim")
        table.add_column("Strategy", style="green")
        table.add_column("Rule", style="dim")

        for rf in unit.fields:
            table.add_row(
                rf.name,
                escape(str(rf.field.type)),
                rf.classification.kind.value,
                "optional" if rf.wire_optional else "required",
                escape(str(rf.strategy)),
                escape(rf.rule),
            )

        console.print(table)
        console.print()

    for failure in result.failures:
        console.print(f"[bold red]{failure.name}[/bold red]: {escape(str(failure.error))}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
