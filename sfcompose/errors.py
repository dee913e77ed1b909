"""Exceptions raised while compiling a component directory."""

from __future__ import annotations

from typing import Iterable, List, Optional


class CompileError(RuntimeError):
    """Base class for fatal compilation failures."""


class MalformedMarkupError(CompileError):
    """Raised when a component document cannot be split into sections."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class SectionSyntaxError(CompileError):
    """Raised when a section's template text fails to parse or compile."""

    def __init__(
        self,
        document: str,
        section: str,
        message: str,
        *,
        lineno: Optional[int] = None,
    ) -> None:
        self.document = document
        self.section = section
        self.lineno = lineno
        location = f"{document} <{section}>"
        if lineno is not None:
            location += f" line {lineno}"
        super().__init__(f"{location}: {message}")


class CyclicDependencyError(CompileError):
    """Raised when a document's dependency closure contains a cycle."""

    def __init__(self, document: str, unresolved: Iterable[str]) -> None:
        self.document = document
        self.unresolved: List[str] = sorted(unresolved)
        super().__init__(
            f"Dependency cycle reachable from {document}: {', '.join(self.unresolved)}"
        )


class DuplicateNameError(CompileError):
    """Raised when two compiled fragments claim the same registry name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Template name registered twice: {name}")


__all__ = [
    "CompileError",
    "CyclicDependencyError",
    "DuplicateNameError",
    "MalformedMarkupError",
    "SectionSyntaxError",
]
