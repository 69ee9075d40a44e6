"""protoconv - Conversion code generator between wire and native types."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protoconv")
except PackageNotFoundError:
    __version__ = "(local)"
