"""Classify, resolve, analyze and synthesize, one struct at a time."""

import logging
from dataclasses import dataclass, field, replace

from .classify import EnumRegistry, TypeClassifier
from .error_mode import analyze
from .strategy import ConfigurationError, StrategyResolver
from .synth import CodeSynthesizer, ConversionUnit
from .trace import DiagnosticsTracer
from .types import Declarations, EngineConfig, EnumSchema, StructSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructFailure:
    name: str
    error: ConfigurationError


@dataclass
class CompileResult:
    """Units for every struct that compiled, failures for the rest."""

    units: list[ConversionUnit] = field(default_factory=list)
    failures: list[StructFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def unit(self, name: str) -> ConversionUnit:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise KeyError(name)

    def raise_for_failures(self) -> None:
        if len(self.failures) == 1:
            raise self.failures[0].error
        if self.failures:
            raise ConfigurationError("\n".join(str(f.error) for f in self.failures))


def compile_struct(
    struct: StructSchema,
    registry: EnumRegistry,
    config: EngineConfig | None = None,
    tracer: DiagnosticsTracer | None = None,
) -> ConversionUnit:
    """Run the whole pipeline for one struct.

    Raises ConfigurationError; nothing partial is returned.
    """
    config = config or EngineConfig()
    tracer = tracer or DiagnosticsTracer.from_env()
    wire_module = config.wire_module_for(struct)
    classifier = TypeClassifier(registry, config.primitive_types, wire_module)

    with tracer.scope(struct.name):
        fields = StrategyResolver(struct, classifier, tracer).resolve_all()
        analysis = analyze(struct, fields)
        tracer.decision(struct.name, None, str(analysis.mode), "struct conversion mode")
        unit = CodeSynthesizer(struct, analysis, wire_module, tracer).synthesize()

    logger.debug("Compiled %s (%s, %d fields)", struct.name, unit.mode, len(unit.fragments))
    return unit


def compile_declarations(
    declarations: Declarations,
    config: EngineConfig | None = None,
    registry: EnumRegistry | None = None,
    tracer: DiagnosticsTracer | None = None,
) -> CompileResult:
    """Compile every struct in declaration order.

    Enums are registered as they are reached, so a struct only sees enums
    declared above it. A struct failing with a configuration error does not
    stop the others.
    """
    config = config or EngineConfig()
    if declarations.wire_module:
        config = replace(config, wire_module=declarations.wire_module)
    registry = registry if registry is not None else EnumRegistry()
    tracer = tracer or DiagnosticsTracer.from_env()

    result = CompileResult()
    for item in declarations.items:
        if isinstance(item, EnumSchema):
            registry.register(item.name)
        elif isinstance(item, StructSchema):
            try:
                result.units.append(compile_struct(item, registry, config, tracer))
            except ConfigurationError as e:
                logger.error("%s", e)
                result.failures.append(StructFailure(item.name, e))
    return result
