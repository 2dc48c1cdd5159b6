"""models.py — Shared data types for rsvpreader."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Chapter:
    title: str       # Normalized display title, e.g. "Introduction"
    page_index: int  # 0-based page in the owning document


@dataclass(frozen=True)
class BookMetadata:
    title: str
    author: str
    source_format: str = ""         # "pdf"


@dataclass(frozen=True)
class Document:
    """One loaded source. Built once when ingestion finishes; never mutated."""
    name: str
    metadata: BookMetadata
    text_by_page: tuple[str, ...]
    word_offsets_by_page: tuple[int, ...]
    words: tuple[str, ...]
    chapters: tuple[Chapter, ...] = ()
    chapter_index: tuple[int, ...] = ()

    @property
    def page_count(self) -> int:
        return len(self.text_by_page)


class PlaybackStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    DONE = "done"


@dataclass
class PlaybackState:
    pointer: int = 0                 # index into Document.words, 0 <= pointer <= len(words)
    running: bool = False
    elapsed_ms: float = 0.0
    started_at: float | None = None  # clock reading in ms, only while running
    status: PlaybackStatus = PlaybackStatus.IDLE


@dataclass
class ReadingSession:
    """Loaded documents plus the playback state of the selected one."""
    documents: list[Document] = field(default_factory=list)
    current: int = -1
    playback: PlaybackState = field(default_factory=PlaybackState)

    @property
    def document(self) -> Document | None:
        if 0 <= self.current < len(self.documents):
            return self.documents[self.current]
        return None
