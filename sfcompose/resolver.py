"""Resolves template references inside component sections to registry names."""

from __future__ import annotations

import posixpath
from typing import Dict, List, Set, Tuple

from jinja2 import Environment, nodes
from jinja2 import TemplateSyntaxError as JinjaSyntaxError
from jinja2.visitor import NodeTransformer

from .errors import SectionSyntaxError
from .extensions import define_name, is_define
from .logging import get_logger
from .models import (
    EMPTY_KIND,
    SECTION_KINDS,
    STRUCTURAL_SECTION,
    CompiledFragment,
    ResolvedDocument,
    SourceDocument,
    SplitSections,
    local_name,
    section_name,
)

# Statements whose ``template`` field names another template.
_REFERENCE_NODES = (nodes.Include, nodes.Import, nodes.FromImport, nodes.Extends)


class InvalidReference(ValueError):
    """Raised when a cross-file reference cannot be canonicalised."""


def is_cross_file(reference: str) -> bool:
    return reference.startswith(".")


def resolve_reference(directory: str, reference: str) -> str:
    """Return the canonical document name a relative reference points at.

    ``directory`` is the referencing document's directory relative to the
    compile root. Any ``#section`` suffix in the reference is ignored.
    """
    target = reference.partition("#")[0]
    joined = posixpath.normpath(posixpath.join(directory, target))
    if joined in {".", ".."} or joined.startswith("../") or joined.startswith("/"):
        raise InvalidReference(f"reference {reference!r} escapes the component root")
    return f"./{joined}"


class _ReferenceRewriter(NodeTransformer):
    """Replaces template reference nodes with copies pointing at canonical names."""

    def __init__(self, document: SourceDocument, section: str) -> None:
        self.document = document
        self.section = section
        self.dependencies: Set[str] = set()
        self.local_references: Set[str] = set()
        self.logger = get_logger("resolver")

    def rewrite(self, body: List[nodes.Node]) -> List[nodes.Node]:
        rewritten: List[nodes.Node] = []
        for node in body:
            result = self.visit(node)
            if result is None:
                continue
            if isinstance(result, list):
                rewritten.extend(result)
            else:
                rewritten.append(result)
        return rewritten

    def _visit_reference(self, node: nodes.Node) -> nodes.Node:
        node = self.generic_visit(node)
        target = self._rewrite_target(node.template, node.lineno)
        values = [target if field == "template" else getattr(node, field) for field in node.fields]
        return type(node)(*values, lineno=node.lineno, environment=node.environment)

    visit_Include = _visit_reference
    visit_Import = _visit_reference
    visit_FromImport = _visit_reference
    visit_Extends = _visit_reference

    def _rewrite_target(self, target: nodes.Expr, lineno: int) -> nodes.Expr:
        if isinstance(target, nodes.Const) and isinstance(target.value, str):
            return nodes.Const(self._canonicalise(target.value, lineno), lineno=target.lineno)
        if isinstance(target, nodes.Tuple):
            items = [self._rewrite_target(item, lineno) for item in target.items]
            return nodes.Tuple(items, target.ctx, lineno=target.lineno)
        if isinstance(target, nodes.List):
            items = [self._rewrite_target(item, lineno) for item in target.items]
            return nodes.List(items, lineno=target.lineno)
        self.logger.debug(
            "Leaving dynamic template reference in %s <%s> line %d unresolved",
            self.document.canonical_name,
            self.section,
            lineno,
        )
        return target

    def _canonicalise(self, reference: str, lineno: int) -> str:
        if not is_cross_file(reference):
            self.local_references.add(reference)
            return local_name(self.document.canonical_name, reference)
        try:
            target = resolve_reference(self.document.directory, reference)
        except InvalidReference as exc:
            raise SectionSyntaxError(
                self.document.relative_path, self.section, str(exc), lineno=lineno
            ) from exc
        if self.section == STRUCTURAL_SECTION:
            self.dependencies.add(target)
        return section_name(target, self.section)


def _contains_define(node: nodes.Node) -> bool:
    return is_define(node) or any(is_define(child) for child in node.find_all(nodes.Block))


class ReferenceResolver:
    """Parses component sections and rewrites their references to canonical names."""

    def __init__(self, environment: Environment) -> None:
        self.environment = environment
        self.logger = get_logger("resolver")

    def resolve(self, document: SourceDocument, sections: SplitSections) -> ResolvedDocument:
        """Return the fragments and structural dependencies of one document."""
        resolved = ResolvedDocument(document=document, scoped=sections.scoped)
        for kind in SECTION_KINDS:
            text = sections.get(kind)
            if text:
                self._resolve_section(document, kind, text, resolved)
            else:
                # References to a missing section render nothing.
                resolved.fragments.append(
                    CompiledFragment(
                        name=section_name(document.canonical_name, kind),
                        tree=self._as_template([]),
                        document=document.canonical_name,
                        section=kind,
                        kind=EMPTY_KIND,
                    )
                )
        if resolved.scoped:
            self.logger.debug("%s declares a scoped style section", document.canonical_name)
        self.logger.debug(
            "Resolved %s: %d fragment(s), %d dependency(ies)",
            document.canonical_name,
            len(resolved.fragments),
            len(resolved.dependencies),
        )
        return resolved

    def _resolve_section(
        self,
        document: SourceDocument,
        section: str,
        text: str,
        resolved: ResolvedDocument,
    ) -> None:
        name = section_name(document.canonical_name, section)
        try:
            tree = self.environment.parse(text, name=name, filename=document.relative_path)
        except JinjaSyntaxError as exc:
            raise SectionSyntaxError(
                document.relative_path, section, exc.message or str(exc), lineno=exc.lineno
            ) from exc

        body, definitions = self._extract_definitions(document, section, tree)
        rewriter = _ReferenceRewriter(document, section)

        resolved.fragments.append(
            CompiledFragment(
                name=name,
                tree=self._as_template(rewriter.rewrite(body)),
                document=document.canonical_name,
                section=section,
            )
        )
        for defined, defined_body in definitions:
            resolved.fragments.append(
                CompiledFragment(
                    name=local_name(document.canonical_name, defined),
                    tree=self._as_template(rewriter.rewrite(defined_body)),
                    document=document.canonical_name,
                    section=section,
                    local_name=defined,
                    kind="local",
                )
            )

        resolved.dependencies.update(rewriter.dependencies)
        resolved.local_references.update(rewriter.local_references)

    def _extract_definitions(
        self,
        document: SourceDocument,
        section: str,
        tree: nodes.Template,
    ) -> Tuple[List[nodes.Node], List[Tuple[str, List[nodes.Node]]]]:
        body: List[nodes.Node] = []
        definitions: Dict[str, List[nodes.Node]] = {}
        for node in tree.body:
            if not is_define(node):
                body.append(node)
                continue
            name = define_name(node)
            if name in definitions:
                raise SectionSyntaxError(
                    document.relative_path,
                    section,
                    f"sub-template {name!r} defined more than once",
                    lineno=node.lineno,
                )
            definitions[name] = node.body

        for node in body + [child for nested in definitions.values() for child in nested]:
            if _contains_define(node):
                raise SectionSyntaxError(
                    document.relative_path,
                    section,
                    "define blocks must appear at the top level of a section",
                    lineno=node.lineno,
                )
        return body, list(definitions.items())

    def _as_template(self, body: List[nodes.Node]) -> nodes.Template:
        template = nodes.Template(body, lineno=1)
        template.set_environment(self.environment)
        return template


__all__ = [
    "InvalidReference",
    "ReferenceResolver",
    "is_cross_file",
    "resolve_reference",
]
