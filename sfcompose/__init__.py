"""Compose single-file component templates into one renderable registry."""

from .config import ComposeConfig, ConfigError, load_config
from .errors import (
    CompileError,
    CyclicDependencyError,
    DuplicateNameError,
    MalformedMarkupError,
    SectionSyntaxError,
)
from .pipeline import ComponentCompiler, compile_directory
from .registry import Registry

__all__ = [
    "ComponentCompiler",
    "ComposeConfig",
    "CompileError",
    "ConfigError",
    "CyclicDependencyError",
    "DuplicateNameError",
    "MalformedMarkupError",
    "Registry",
    "SectionSyntaxError",
    "compile_directory",
    "load_config",
]
