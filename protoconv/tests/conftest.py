"""Unit tests configuration file."""

import pytest

from protoconv.generator import EnumRegistry, TypeClassifier
from protoconv.generator.trace import TRACE_ENV_VAR, DiagnosticsTracer, RecordingSink


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture(autouse=True)
def no_trace_env(monkeypatch):
    monkeypatch.delenv(TRACE_ENV_VAR, raising=False)


@pytest.fixture
def registry():
    return EnumRegistry(["Status"])


@pytest.fixture
def classifier(registry):
    return TypeClassifier(registry)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tracer(sink):
    return DiagnosticsTracer([sink])
