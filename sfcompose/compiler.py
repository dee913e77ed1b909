"""Synthesizes the page root for every component document."""

from __future__ import annotations

from typing import Collection, Dict, List, Optional, Sequence

from jinja2 import Environment
from jinja2 import TemplateSyntaxError as JinjaSyntaxError

from .config import DEFAULT_DOCTYPE
from .errors import SectionSyntaxError
from .graph import DependencyGraph
from .logging import get_logger
from .models import STRUCTURAL_SECTION, CompiledFragment, section_name


def _include(name: str) -> str:
    # File names may contain quotes or backslashes.
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return '{% include "' + escaped + '" %}'


def render_root_source(
    name: str,
    order: Sequence[str],
    available: Collection[str],
    *,
    doctype: str = DEFAULT_DOCTYPE,
) -> str:
    """Return the template text of the page root for ``name``.

    ``order`` is the sorted dependency closure and ``available`` the set of
    registered fragment names; members without a style or script fragment
    contribute nothing.
    """
    styles: List[str] = []
    scripts: List[str] = []
    for member in order:
        style = section_name(member, "style")
        if style in available:
            styles.append(_include(style))
        script = section_name(member, "script")
        if script in available:
            scripts.append(_include(script))

    structure = section_name(name, STRUCTURAL_SECTION)
    body = _include(structure) if structure in available else ""

    lines: List[str] = []
    if doctype:
        lines.append(doctype)
    lines.extend(["<html>", "<style>"])
    lines.extend(styles)
    lines.extend(["</style>", "<script>"])
    lines.extend(scripts)
    lines.append("</script>")
    if body:
        lines.append(body)
    lines.append("</html>")
    return "\n".join(lines) + "\n"


class TopologicalCompiler:
    """Orders each document's dependency closure and builds its root template."""

    def __init__(
        self,
        environment: Environment,
        graph: DependencyGraph,
        available: Collection[str],
        *,
        doctype: str = DEFAULT_DOCTYPE,
    ) -> None:
        self.environment = environment
        self.graph = graph
        self.available = available
        self.doctype = doctype
        self.orders: Dict[str, List[str]] = {}
        self.logger = get_logger("compiler")

    def compile(self, name: str) -> CompiledFragment:
        """Return the root fragment for document ``name``."""
        order = self.graph.sorted_closure(name)
        self.orders[name] = order
        source = render_root_source(name, order, self.available, doctype=self.doctype)
        try:
            tree = self.environment.parse(source, name=name)
        except JinjaSyntaxError as exc:
            raise SectionSyntaxError(name, "root", exc.message or str(exc), lineno=exc.lineno) from exc
        return CompiledFragment(name=name, tree=tree, document=name, kind="root")

    def compile_all(self, documents: Optional[Sequence[str]] = None) -> List[CompiledFragment]:
        """Compile roots for ``documents`` (default: every graph document) in name order."""
        names = sorted(documents) if documents is not None else self.graph.documents
        if not self.graph.frozen:
            self.graph.freeze()
        roots = [self.compile(name) for name in names]
        self.logger.debug("Synthesized %d page root(s)", len(roots))
        return roots


__all__ = ["TopologicalCompiler", "render_root_source"]
