"""Wire/native conversion code generator."""

from .classify import Classification as Classification
from .classify import EnumRegistry as EnumRegistry
from .classify import Kind as Kind
from .classify import TypeClassifier as TypeClassifier
from .engine import CompileResult as CompileResult
from .engine import compile_declarations as compile_declarations
from .engine import compile_struct as compile_struct
from .parser import ValidationError as ValidationError
from .parser import parse as parse
from .strategy import ConfigurationError as ConfigurationError
from .strategy import StrategyResolver as StrategyResolver
from .trace import DiagnosticsTracer as DiagnosticsTracer
from .types import *
