"""parsers/base.py — Shared parser utilities, types and collaborator protocols."""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Fold curly quotes to ASCII and collapse whitespace runs to one space."""
    text = text.replace("‘", "'").replace("’", "'")
    text = text.replace("“", '"').replace("”", '"')
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    """Split text on whitespace runs, dropping empty pieces."""
    return text.split()


def split_lines(fragments: Iterable[str]) -> list[str]:
    """Break fragments on line breaks and normalize each non-empty line."""
    lines = []
    for fragment in fragments:
        for raw in fragment.splitlines():
            line = normalize_text(raw)
            if line:
                lines.append(line)
    return lines


@dataclass
class OutlineEntry:
    """One bookmark: `dest` is a named destination (str) or an explicit one."""
    title: str
    dest: Any = None
    items: list["OutlineEntry"] = field(default_factory=list)


@dataclass
class ExtractionResult:
    text_by_page: list[str] = field(default_factory=list)
    lines_by_page: list[list[str]] = field(default_factory=list)
    word_offsets_by_page: list[int] = field(default_factory=list)
    words: list[str] = field(default_factory=list)

    @property
    def all_text(self) -> str:
        return " ".join(self.words)


class PageHandle(Protocol):
    def text_fragments(self) -> list[str]: ...

    def render(self, scale: float) -> Any: ...


class DocumentSource(Protocol):
    """Page text source. Outline support is optional: sources without
    `get_outline` / `get_destination` / `resolve_dest_to_page_index`
    simply skip the bookmark tier."""

    @property
    def page_count(self) -> int: ...

    def get_page(self, number: int) -> PageHandle: ...


class OcrEngine(Protocol):
    def recognize(self, raster: Any) -> str: ...
