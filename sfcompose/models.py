"""Core data models shared across sfcompose components."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from jinja2 import nodes

SECTION_KINDS: tuple[str, ...] = ("style", "script", "template")

STRUCTURAL_SECTION = "template"

# Fragment kind for a section the document leaves out; it renders nothing.
EMPTY_KIND = "empty"


@dataclass(frozen=True)
class SourceDocument:
    """One component file discovered under the compile root."""

    relative_path: str
    canonical_name: str
    path: Path

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.relative_path)


@dataclass
class SplitSections:
    """Raw text of the three sections of a component document."""

    style: str = ""
    script: str = ""
    template: str = ""
    scoped: bool = False

    def get(self, kind: str) -> str:
        if kind not in SECTION_KINDS:
            raise KeyError(kind)
        return getattr(self, kind)

    def is_empty(self) -> bool:
        return not (self.style or self.script or self.template)


@dataclass
class CompiledFragment:
    """A parsed, reference-rewritten template tree addressable by name."""

    name: str
    tree: nodes.Template
    document: str
    section: Optional[str] = None
    local_name: Optional[str] = None
    kind: str = "section"

    @property
    def is_empty(self) -> bool:
        return self.kind == EMPTY_KIND


@dataclass
class ResolvedDocument:
    """Per-document output of the split and resolve steps."""

    document: SourceDocument
    fragments: List[CompiledFragment] = field(default_factory=list)
    dependencies: Set[str] = field(default_factory=set)
    local_references: Set[str] = field(default_factory=set)
    scoped: bool = False


def section_name(canonical_name: str, section: str) -> str:
    """Return the registry name of a document's top-level section."""
    return f"{canonical_name}#{section}"


def local_name(canonical_name: str, name: str) -> str:
    """Return the registry name of a sub-template defined inside a document."""
    return f"{canonical_name}~{name}"


def canonical_name_for(relative_path: str, extension: str) -> str:
    """Map ``a/b/c.tmpl`` to ``./a/b/c``."""
    stem = relative_path
    if extension and stem.endswith(extension):
        stem = stem[: -len(extension)]
    return f"./{stem}"


__all__ = [
    "CompiledFragment",
    "EMPTY_KIND",
    "ResolvedDocument",
    "SECTION_KINDS",
    "STRUCTURAL_SECTION",
    "SourceDocument",
    "SplitSections",
    "canonical_name_for",
    "local_name",
    "section_name",
]
