"""Splits a single-file component into its style, script and template sections."""

from __future__ import annotations

import os
import re
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import MalformedMarkupError
from .models import SECTION_KINDS, SplitSections

_NEWLINE_RE = re.compile("\n")


class _SectionTokenizer(HTMLParser):
    """Tracks top-level section tags and records the raw text between them.

    All three recognised tag names share one depth counter, so a ``<style>``
    nested inside ``<template>`` is kept verbatim in the template body.
    """

    def __init__(self, text: str, source: Optional[str]) -> None:
        super().__init__(convert_charrefs=False)
        self._text = text
        self._source = source
        self._line_starts: List[int] = [0] + [m.end() for m in _NEWLINE_RE.finditer(text)]
        self.depth = 0
        self.current: Optional[str] = None
        self.content_start = 0
        self.sections: Dict[str, str] = {}
        self.scoped = False

    def _offset(self) -> int:
        lineno, column = self.getpos()
        return self._line_starts[lineno - 1] + column

    def _fail(self, message: str) -> MalformedMarkupError:
        lineno, _ = self.getpos()
        return MalformedMarkupError(f"{message} (line {lineno})", source=self._source)

    def _open(self, tag: str, attrs: Sequence[Tuple[str, Optional[str]]]) -> None:
        if tag in self.sections:
            raise self._fail(f"duplicate <{tag}> section")
        if tag == "style" and any(name == "scoped" for name, _ in attrs):
            self.scoped = True

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag not in SECTION_KINDS:
            return
        self.depth += 1
        if self.depth == 1:
            self._open(tag, attrs)
            self.current = tag
            self.content_start = self._offset() + len(self.get_starttag_text() or "")

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag not in SECTION_KINDS or self.depth:
            return
        self._open(tag, attrs)
        self.sections[tag] = ""

    def handle_endtag(self, tag: str) -> None:
        if tag not in SECTION_KINDS:
            return
        if self.depth == 0:
            raise self._fail(f"unexpected </{tag}>")
        self.depth -= 1
        if self.depth == 0:
            if tag != self.current:
                raise self._fail(f"<{self.current}> closed by </{tag}>")
            self.sections[tag] = self._text[self.content_start : self._offset()]
            self.current = None

    def finish(self) -> None:
        self.close()
        if self.depth:
            raise MalformedMarkupError(
                f"unclosed <{self.current}> section at end of input", source=self._source
            )


def _indent(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


def normalise_section(text: str) -> str:
    """Strip blank leading/trailing lines and remove common indentation.

    The indentation shared by every non-blank line is removed. Whitespace-only
    lines lose that prefix when they carry it and are otherwise kept as is, so
    preformatted content survives.
    """
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        return ""

    prefix = os.path.commonprefix([_indent(line) for line in lines if line.strip()])
    if not prefix:
        return "\n".join(lines)
    return "\n".join(line[len(prefix) :] if line.startswith(prefix) else line for line in lines)


def split_document(text: str, *, source: Optional[str] = None) -> SplitSections:
    """Split component text into its three sections."""
    text = text.replace("\r\n", "\n")
    tokenizer = _SectionTokenizer(text, source)
    tokenizer.feed(text)
    tokenizer.finish()

    sections = SplitSections(scoped=tokenizer.scoped)
    for kind, raw in tokenizer.sections.items():
        setattr(sections, kind, normalise_section(raw))
    return sections


def split_file(path: Path, *, source: Optional[str] = None) -> SplitSections:
    """Read a component file from disk and split it."""
    data = path.read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedMarkupError(f"not valid UTF-8: {exc}", source=source or str(path)) from exc
    return split_document(text, source=source or str(path))


__all__ = ["normalise_section", "split_document", "split_file"]
