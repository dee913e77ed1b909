"""Jinja extensions and environment construction for component templates."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from jinja2 import Environment, StrictUndefined, Undefined, nodes
from jinja2.ext import Extension
from jinja2.parser import Parser

from .config import EnvironmentConfig

# Block names with this prefix are local definitions, not inheritance blocks.
DEFINE_PREFIX = "define:"


def is_define(node: nodes.Node) -> bool:
    """Return True when ``node`` was produced by ``{% define %}``."""
    return isinstance(node, nodes.Block) and node.name.startswith(DEFINE_PREFIX)


def define_name(node: nodes.Block) -> str:
    return node.name[len(DEFINE_PREFIX) :]


class DefineExtension(Extension):
    """Adds ``{% define "name" %}...{% enddefine %}`` for local sub-templates.

    Jinja does not allow new node types, so a definition is parsed into a
    :class:`jinja2.nodes.Block` whose name carries :data:`DEFINE_PREFIX`. The
    resolver lifts every such block out of its section before code generation
    and registers the body on its own.
    """

    tags = {"define"}

    def parse(self, parser: Parser) -> nodes.Node:
        lineno = next(parser.stream).lineno
        token = parser.stream.current
        if token.type == "string" or token.type == "name":
            name = str(token.value)
            next(parser.stream)
        else:
            parser.fail("define expects a template name", token.lineno)
        body = parser.parse_statements(("name:enddefine",), drop_needle=True)
        return nodes.Block(
            f"{DEFINE_PREFIX}{name}", body, False, False, lineno=lineno
        )


def build_environment(
    settings: Optional[EnvironmentConfig] = None,
    functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    filters: Optional[Mapping[str, Callable[..., Any]]] = None,
) -> Environment:
    """Create the Jinja environment that parses and renders component sections."""
    settings = settings or EnvironmentConfig()
    undefined: type[Undefined] = StrictUndefined if settings.strict_undefined else Undefined
    environment = Environment(
        extensions=[DefineExtension],
        autoescape=settings.autoescape,
        trim_blocks=settings.trim_blocks,
        lstrip_blocks=settings.lstrip_blocks,
        undefined=undefined,
    )
    if functions:
        environment.globals.update(functions)
    if filters:
        environment.filters.update(filters)
    return environment


__all__ = ["DEFINE_PREFIX", "DefineExtension", "build_environment", "define_name", "is_define"]
