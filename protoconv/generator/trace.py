"""Diagnostics tracing of engine decisions.

Tracing is selected per struct name with the ``PROTOCONV_DEBUG`` environment
variable:

    all, 1, true        every struct
    Request             exact name
    Track*              prefix
    *Request            suffix
    *User*              substring
    Request,Track*      several patterns
    0, false, none, ""  disabled

Events are only observed; sinks never influence what the engine produces.
"""

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Protocol

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

TRACE_ENV_VAR = "PROTOCONV_DEBUG"

_ENABLE_ALL = frozenset(["all", "1", "true"])
_DISABLE = frozenset(["0", "false", "none", ""])


class TracePhase(StrEnum):
    """Kind of trace event."""

    ENTER = auto()
    EXIT = auto()
    DECISION = auto()
    GENERATED = auto()


@dataclass(frozen=True)
class TraceEvent:
    """A single observation from the engine."""

    phase: TracePhase
    struct: str
    field: str | None = None
    strategy: str | None = None
    rationale: str | None = None
    fragment: str | None = None

    @property
    def target(self) -> str:
        return f"{self.struct}.{self.field}" if self.field else self.struct


def matches_pattern(pattern: str, name: str) -> bool:
    """Check if a struct name matches one debug pattern."""
    if pattern == "all" or pattern == name:
        return True

    if "*" not in pattern:
        return False

    if len(pattern) > 1 and pattern.startswith("*") and pattern.endswith("*"):
        return pattern[1:-1] in name
    if pattern.startswith("*"):
        return name.endswith(pattern[1:])
    if pattern.endswith("*"):
        return name.startswith(pattern[:-1])
    return False


@dataclass(frozen=True)
class TraceFilter:
    """Which struct names emit trace events."""

    enabled: bool = False
    patterns: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: str | None) -> "TraceFilter":
        if value is None:
            return cls()
        value = value.strip()
        if value.lower() in _DISABLE:
            return cls()
        if value.lower() in _ENABLE_ALL:
            return cls(enabled=True, patterns=("all",))
        patterns = tuple(p.strip() for p in value.split(",") if p.strip())
        return cls(enabled=bool(patterns), patterns=patterns)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TraceFilter":
        env = os.environ if environ is None else environ
        return cls.parse(env.get(TRACE_ENV_VAR))

    def matches(self, name: str) -> bool:
        if not self.enabled:
            return False
        return any(matches_pattern(pattern, name) for pattern in self.patterns)


class TraceSink(Protocol):
    """Receives trace events."""

    def emit(self, event: TraceEvent) -> None: ...


@dataclass
class RecordingSink:
    """Keeps events in memory."""

    events: list[TraceEvent] = field(default_factory=list)

    def emit(self, event: TraceEvent) -> None:
        self.events.append(event)

    def for_field(self, struct: str, field_name: str) -> list[TraceEvent]:
        return [e for e in self.events if e.struct == struct and e.field == field_name]


class ConsoleSink:
    """Pretty-prints events as an indented tree on stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True, highlight=False)
        self._depth = 0

    def emit(self, event: TraceEvent) -> None:
        target = escape(event.target)

        if event.phase == TracePhase.ENTER:
            self.console.print(f"{self._indent()}┌─ [bold cyan]ENTER[/bold cyan] {target}")
            self._depth += 1
            return

        if event.phase == TracePhase.EXIT:
            self._depth = max(0, self._depth - 1)
            self.console.print(f"{self._indent()}└─ [bold cyan]EXIT[/bold cyan]  {target}")
            return

        prefix = f"{self._indent()}│  "
        if event.phase == TracePhase.DECISION:
            strategy = escape(event.strategy or "")
            rationale = escape(event.rationale or "")
            self.console.print(f"{prefix}[yellow]{target}[/yellow] -> {strategy}  [dim]{rationale}[/dim]")
            return

        self.console.print(f"{prefix}[green]generated[/green] {target}")
        for number, line in enumerate((event.fragment or "").splitlines(), start=1):
            self.console.print(f"{prefix}  [dim]{number:3} |[/dim] {escape(line)}")

    def _indent(self) -> str:
        return "│  " * self._depth


class DiagnosticsTracer:
    """Fans engine events out to sinks for the selected struct names."""

    def __init__(
        self, sinks: Sequence[TraceSink] = (), trace_filter: TraceFilter | None = None
    ) -> None:
        self.sinks = list(sinks)
        self.filter = trace_filter or TraceFilter(enabled=True, patterns=("all",))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DiagnosticsTracer":
        """Console tracer configured from PROTOCONV_DEBUG, silent when unset."""
        trace_filter = TraceFilter.from_env(environ)
        if not trace_filter.enabled:
            return cls()
        return cls([ConsoleSink()], trace_filter)

    def enabled_for(self, struct: str) -> bool:
        return bool(self.sinks) and self.filter.matches(struct)

    def emit(self, event: TraceEvent) -> None:
        if not self.enabled_for(event.struct):
            return
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception("Trace sink %r failed on %s", sink, event.target)

    def decision(
        self, struct: str, field_name: str | None, strategy: str, rationale: str
    ) -> None:
        self.emit(TraceEvent(TracePhase.DECISION, struct, field_name, strategy, rationale))

    def generated(
        self, struct: str, field_name: str | None, fragment: str, strategy: str | None = None
    ) -> None:
        self.emit(TraceEvent(TracePhase.GENERATED, struct, field_name, strategy, fragment=fragment))

    @contextmanager
    def scope(self, struct: str, field_name: str | None = None) -> Iterator[None]:
        """Emit matching ENTER/EXIT events around a block."""
        self.emit(TraceEvent(TracePhase.ENTER, struct, field_name))
        try:
            yield
        finally:
            self.emit(TraceEvent(TracePhase.EXIT, struct, field_name))


NULL_TRACER = DiagnosticsTracer()
