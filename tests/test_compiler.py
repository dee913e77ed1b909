"""Tests for sfcompose.compiler."""

from __future__ import annotations

import pytest
from jinja2 import nodes

from sfcompose.compiler import TopologicalCompiler, render_root_source
from sfcompose.errors import CyclicDependencyError
from sfcompose.extensions import build_environment
from sfcompose.graph import DependencyGraph


def _includes(tree: nodes.Template) -> list[str]:
    return [node.template.value for node in tree.find_all(nodes.Include)]


def test_root_source_for_home_and_nav() -> None:
    available = {"./nav#style", "./nav#script", "./nav#template", "./home#template"}

    source = render_root_source("./home", ["./nav", "./home"], available)

    assert source == (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<style>\n"
        '{% include "./nav#style" %}\n'
        "</style>\n"
        "<script>\n"
        '{% include "./nav#script" %}\n'
        "</script>\n"
        '{% include "./home#template" %}\n'
        "</html>\n"
    )


def test_root_source_keeps_empty_blocks_for_structure_only_documents() -> None:
    source = render_root_source("./plain", ["./plain"], {"./plain#template"}, doctype="")

    assert source == (
        "<html>\n"
        "<style>\n"
        "</style>\n"
        "<script>\n"
        "</script>\n"
        '{% include "./plain#template" %}\n'
        "</html>\n"
    )


def test_root_source_skips_members_without_fragments() -> None:
    available = {"./a#style", "./c#script"}

    source = render_root_source("./page", ["./a", "./b", "./c", "./page"], available)

    assert '"./a#style"' in source
    assert '"./c#script"' in source
    assert "./b#" not in source
    assert "./page#template" not in source


def test_compile_all_builds_one_root_per_document() -> None:
    environment = build_environment()
    graph = DependencyGraph()
    graph.add_document("./home", ["./nav"])
    graph.add_document("./nav", [])
    available = {"./nav#style", "./nav#template", "./home#template"}

    compiler = TopologicalCompiler(environment, graph, available)
    roots = compiler.compile_all()

    assert graph.frozen is True
    assert [root.name for root in roots] == ["./home", "./nav"]
    assert all(root.kind == "root" for root in roots)
    assert _includes(roots[0].tree) == ["./nav#style", "./home#template"]
    assert compiler.orders == {"./home": ["./nav", "./home"], "./nav": ["./nav"]}


def test_compile_all_fails_on_cycles() -> None:
    graph = DependencyGraph()
    graph.add_document("./a", ["./b"])
    graph.add_document("./b", ["./a"])

    compiler = TopologicalCompiler(build_environment(), graph, set())

    with pytest.raises(CyclicDependencyError):
        compiler.compile_all()
