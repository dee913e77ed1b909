"""Component directory scanning."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Sequence

from .config import DEFAULT_EXTENSION
from .models import SourceDocument, canonical_name_for

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}


@dataclass
class IgnoreRule:
    """Represents an exclude pattern from .sfcompose.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None

    negate = pattern.startswith("!")
    if negate:
        pattern = pattern[1:]

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _iter_files(root: Path, extension: str, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if not filename.endswith(extension):
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


class ComponentScanner:
    """Walks a component directory to produce its source documents."""

    def __init__(
        self,
        extension: str = DEFAULT_EXTENSION,
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.extension = extension
        self.rules: List[IgnoreRule] = [
            rule for rule in (build_ignore_rule(p) for p in exclude_paths) if rule is not None
        ]

    def scan(self, root: str | Path) -> List[SourceDocument]:
        """Return every component document under ``root`` sorted by canonical name."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Component directory not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Component path is not a directory: {root}")

        documents: List[SourceDocument] = []
        for path in _iter_files(root_path, self.extension, self.rules):
            rel_path = path.relative_to(root_path).as_posix()
            documents.append(
                SourceDocument(
                    relative_path=rel_path,
                    canonical_name=canonical_name_for(rel_path, self.extension),
                    path=path,
                )
            )
        documents.sort(key=lambda document: document.canonical_name)
        return documents


__all__ = ["ComponentScanner", "IgnoreRule", "build_ignore_rule"]
