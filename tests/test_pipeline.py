"""End-to-end tests for sfcompose.pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from jinja2 import TemplateNotFound, nodes

from sfcompose import (
    ComponentCompiler,
    ComposeConfig,
    CyclicDependencyError,
    DuplicateNameError,
    MalformedMarkupError,
    SectionSyntaxError,
    compile_directory,
)
from tests._fixtures.component_builder import ComponentBuilder

NAV = """
<style>
.nav{}
</style>
<script>
init()
</script>
<template>
<nav/>
</template>
"""


def _root_includes(registry, name: str) -> list[str]:
    tree = registry.fragments[name].tree
    return [node.template.value for node in tree.find_all(nodes.Include)]


def test_home_includes_nav_style_and_script_once(components: ComponentBuilder) -> None:
    components.write(
        {
            "nav.tmpl": NAV,
            "home.tmpl": """
                <template>
                {% include "./nav" %}
                {% include "./nav" %}
                </template>
            """,
        }
    )

    registry = components.compile()

    assert _root_includes(registry, "./home") == [
        "./nav#style",
        "./nav#script",
        "./home#template",
    ]
    home_body = _root_includes(registry, "./home#template")
    assert home_body == ["./nav#template", "./nav#template"]
    assert registry.render("./home") == (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<style>\n"
        ".nav{}\n"
        "</style>\n"
        "<script>\n"
        "init()\n"
        "</script>\n"
        "<nav/>\n"
        "<nav/>\n"
        "</html>"
    )


def test_registry_exposes_canonical_names(components: ComponentBuilder) -> None:
    components.write({"nav.tmpl": NAV, "pages/admin/users.tmpl": "<template>users</template>"})

    registry = components.compile()

    assert registry.documents == ("./nav", "./pages/admin/users")
    assert registry.names() == [
        "./nav",
        "./nav#script",
        "./nav#style",
        "./nav#template",
        "./pages/admin/users",
        "./pages/admin/users#script",
        "./pages/admin/users#style",
        "./pages/admin/users#template",
    ]


def test_diamond_dependencies_are_deduplicated(components: ComponentBuilder) -> None:
    components.write(
        {
            "shared.tmpl": "<style>.shared{}</style><template>S</template>",
            "a.tmpl": '<style>.a{}</style><template>{% include "./shared" %}</template>',
            "b.tmpl": '<script>b()</script><template>{% include "./shared" %}</template>',
            "page.tmpl": '<template>{% include "./a" %}{% include "./b" %}</template>',
        }
    )

    registry = components.compile()
    output = registry.render("./page")

    assert registry.dependency_order("./page") == ("./shared", "./a", "./b", "./page")
    assert output.count(".shared{}") == 1
    assert output.count(".a{}") == 1
    assert output.count("b()") == 1
    assert "SS" in output
    assert output.index(".shared{}") < output.index(".a{}")


def test_compilation_is_deterministic(components: ComponentBuilder) -> None:
    components.write(
        {
            "nav.tmpl": NAV,
            "icons/star.tmpl": "<style>.star{}</style><template>*</template>",
            "widgets/rating.tmpl": '<style>.rating{}</style><template>{% include "../icons/star" %}</template>',
            "home.tmpl": '<template>{% include "./widgets/rating" %}{% include "./nav" %}</template>',
        }
    )

    first = components.compile()
    second = components.compile()
    threaded = components.compile(config=ComposeConfig(root=components.path(), workers=4))

    for registry in (second, threaded):
        assert registry.names() == first.names()
        for name in first.documents:
            assert registry.dependency_order(name) == first.dependency_order(name)
            assert registry.render(name) == first.render(name)


def test_cycles_fail_without_a_registry(components: ComponentBuilder) -> None:
    components.write(
        {
            "a.tmpl": '<template>{% include "./b" %}</template>',
            "b.tmpl": '<template>{% include "./a" %}</template>',
        }
    )

    with pytest.raises(CyclicDependencyError) as excinfo:
        components.compile()

    assert excinfo.value.unresolved == ["./a", "./b"]


def test_relative_references_are_normalised(components: ComponentBuilder) -> None:
    components.write(
        {
            "a/x.tmpl": "<style>.x{}</style><template>X</template>",
            "a/b/y.tmpl": "<style>.y{}</style><template>Y</template>",
            "a/b/c.tmpl": '<template>{% include "../x" %}{% include "./y" %}</template>',
        }
    )

    registry = components.compile()

    assert registry.dependency_order("./a/b/c") == ("./a/b/y", "./a/x", "./a/b/c")
    assert _root_includes(registry, "./a/b/c#template") == ["./a/x#template", "./a/b/y#template"]
    assert "XY" in registry.render("./a/b/c")


def test_structure_only_document_renders_empty_blocks(components: ComponentBuilder) -> None:
    components.write({"plain.tmpl": "<template><p>plain</p></template>"})

    registry = components.compile()
    output = registry.render("./plain")

    assert "<style>\n</style>\n<script>\n</script>\n<p>plain</p>" in output
    assert "./plain" in registry.documents


def test_references_to_missing_sections_render_nothing(components: ComponentBuilder) -> None:
    components.write(
        {
            "empty.tmpl": "<p>nothing recognised here</p>",
            "home.tmpl": '<template>[{% include "./empty" %}]</template>',
        }
    )

    registry = components.compile()

    assert "./empty" in registry
    assert registry.fragments["./empty#template"].is_empty
    assert registry.dependency_order("./home") == ("./empty", "./home")
    assert registry.render("./home") == (
        "<!DOCTYPE html>\n<html>\n<style>\n</style>\n<script>\n</script>\n[]\n</html>"
    )


def test_style_reference_to_document_without_style(components: ComponentBuilder) -> None:
    components.write(
        {
            "plain.tmpl": "<template>plain</template>",
            "home.tmpl": """
                <style>
                {% include "./plain" %}.h{}
                </style>
                <script>
                {% include "./plain" %}go()
                </script>
                <template>{% include "./plain" %}</template>
            """,
        }
    )

    registry = components.compile()
    output = registry.render("./home")

    assert "<style>\n.h{}\n</style>" in output
    assert "<script>\ngo()\n</script>" in output
    assert output.count("plain") == 1
    assert _root_includes(registry, "./home") == [
        "./home#style",
        "./home#script",
        "./home#template",
    ]


def test_local_names_do_not_resolve_to_other_documents(components: ComponentBuilder) -> None:
    components.write(
        {
            "nav.tmpl": "<style>.nav-style{}</style><template>global nav</template>",
            "home.tmpl": """
                <template>
                {% define "nav" %}<p>local nav</p>{% enddefine %}
                <main>{% include "nav" %}</main>
                </template>
            """,
        }
    )

    registry = components.compile()
    output = registry.render("./home")

    assert registry.dependency_order("./home") == ("./home",)
    assert "<main><p>local nav</p></main>" in output
    assert ".nav-style{}" not in output
    assert "global nav" not in output


def test_self_including_component_renders_recursively(components: ComponentBuilder) -> None:
    components.write(
        {
            "tree.tmpl": """
                <style>
                .tree{}
                </style>
                <template>
                <ul>{% if depth > 0 %}{% with depth = depth - 1 %}{% include "./tree" %}{% endwith %}{% endif %}</ul>
                </template>
            """,
        }
    )

    registry = components.compile()
    output = registry.render("./tree", depth=2)

    assert registry.dependency_order("./tree") == ("./tree",)
    assert output.count(".tree{}") == 1
    assert "<ul><ul><ul></ul></ul></ul>" in output


def test_function_table_is_available_to_templates(components: ComponentBuilder) -> None:
    components.write({"home.tmpl": '<template>{{ shout("hi") }}</template>'})

    registry = components.compile({"shout": lambda text: text.upper()})

    assert "HI" in registry.render("./home")


def test_output_is_autoescaped_by_default(components: ComponentBuilder) -> None:
    components.write({"home.tmpl": "<template>{{ value }}</template>"})

    registry = components.compile()

    assert "&lt;b&gt;" in registry.render("./home", value="<b>")


def test_missing_cross_file_target_warns(components: ComponentBuilder, caplog) -> None:
    components.write({"home.tmpl": '<template>{% include "./ghost" %}</template>'})

    with caplog.at_level(logging.WARNING, logger="sfcompose"):
        registry = components.compile()

    assert "./ghost has no source file" in caplog.text
    assert registry.dependency_order("./home") == ("./ghost", "./home")


def test_undefined_local_reference_warns(components: ComponentBuilder, caplog) -> None:
    components.write({"home.tmpl": '<template>{% include "card" %}</template>'})

    with caplog.at_level(logging.WARNING, logger="sfcompose"):
        registry = components.compile()

    assert "defines no sub-template" in caplog.text
    with pytest.raises(TemplateNotFound):
        registry.render("./home")


def test_scoped_style_is_recorded_only(components: ComponentBuilder) -> None:
    components.write({"nav.tmpl": "<style scoped>.nav{}</style><template>n</template>"})

    registry = components.compile()

    assert registry.scoped_styles == frozenset({"./nav"})
    assert ".nav{}" in registry.render("./nav")


def test_duplicate_define_across_sections_fails(components: ComponentBuilder) -> None:
    components.write(
        {
            "home.tmpl": """
                <style>{% define "x" %}a{% enddefine %}</style>
                <template>{% define "x" %}b{% enddefine %}</template>
            """,
        }
    )

    with pytest.raises(DuplicateNameError):
        components.compile()


def test_malformed_markup_aborts_compilation(components: ComponentBuilder) -> None:
    components.write({"ok.tmpl": "<template>ok</template>", "broken.tmpl": "<template>oops"})

    with pytest.raises(MalformedMarkupError) as excinfo:
        components.compile()

    assert excinfo.value.source == "broken.tmpl"


def test_template_syntax_error_aborts_compilation(components: ComponentBuilder) -> None:
    components.write({"broken.tmpl": "<script>{% for %}</script>"})

    with pytest.raises(SectionSyntaxError) as excinfo:
        components.compile()

    assert excinfo.value.document == "broken.tmpl"
    assert excinfo.value.section == "script"


def test_unknown_filter_fails_at_compile_time(components: ComponentBuilder) -> None:
    components.write({"home.tmpl": "<template>{{ name|shout }}</template>"})

    with pytest.raises(SectionSyntaxError):
        components.compile()


def test_missing_root_raises(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError) as excinfo:
        compile_directory(missing)

    assert str(missing) in str(excinfo.value)


def test_config_file_controls_extension_and_exclusions(components: ComponentBuilder) -> None:
    components.write(
        {
            ".sfcompose.yml": """
                extension: html
                exclude_paths:
                  - drafts/
                root:
                  doctype: ""
            """,
            "home.html": "<template>home</template>",
            "drafts/wip.html": "<template>wip</template>",
            "legacy.tmpl": "<template>legacy</template>",
        }
    )

    registry = ComponentCompiler().compile(components.path())

    assert registry.documents == ("./home",)
    assert registry.render("./home").startswith("<html>")
