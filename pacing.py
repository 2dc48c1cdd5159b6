"""pacing.py — Timer-driven RSVP pacing engine with ORP splitting."""

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Protocol, Sequence

from models import Document, PlaybackStatus, ReadingSession

logger = logging.getLogger(__name__)

DEFAULT_WPM = 300
MIN_DELAY_MS = 20
SPEECH_BATCH_WORDS = 40

SENTENCE_END_MULT = 2.2
STRONG_PAUSE_MULT = 1.8
COMMA_PAUSE_MULT = 1.35
LONG_WORD_MULT = 1.1
LONG_WORD_LETTERS = 12

# Trailing closing quotes/brackets do not hide the punctuation before them
_SENTENCE_END = re.compile(r"[.!?][\"')\]]*$")
_STRONG_PAUSE = re.compile(r"[;:][\"')\]]*$")
_COMMA_PAUSE = re.compile(r",[\"')\]]*$")


def is_sentence_end(word: str) -> bool:
    return _SENTENCE_END.search(word) is not None


def is_strong_pause(word: str) -> bool:
    return _STRONG_PAUSE.search(word) is not None


def is_comma_pause(word: str) -> bool:
    return _COMMA_PAUSE.search(word) is not None


class OrpSplit(NamedTuple):
    pre: str
    orp: str
    post: str


def orp_index(length: int) -> int:
    if length <= 1:
        return 0
    if length <= 5:
        return 1
    if length <= 9:
        return 2
    if length <= 13:
        return 3
    return 4


def split_word_for_orp(word: str) -> OrpSplit:
    idx = max(0, min(orp_index(len(word)), len(word) - 1))
    return OrpSplit(word[:idx], word[idx:idx + 1], word[idx + 1:])


def pause_multiplier(word: str) -> float:
    if is_sentence_end(word):
        return SENTENCE_END_MULT
    if is_strong_pause(word):
        return STRONG_PAUSE_MULT
    if is_comma_pause(word):
        return COMMA_PAUSE_MULT
    if len(re.sub(r"[^A-Za-z]", "", word)) >= LONG_WORD_LETTERS:
        return LONG_WORD_MULT
    return 1.0


def base_interval_ms(wpm: int) -> float:
    return 60000 / wpm


def word_delay_ms(word: str, wpm: int) -> int:
    """Display time for `word`: the per-word interval scaled by its pause class."""
    # Half-up rounding
    return max(MIN_DELAY_MS, math.floor(base_interval_ms(wpm) * pause_multiplier(word) + 0.5))


def collect_speech_batch(words: Sequence[str], start: int, limit: int = SPEECH_BATCH_WORDS) -> list[str]:
    """Up to `limit` words from `start`, ending early after a sentence end."""
    batch = []
    for word in words[start:start + limit]:
        batch.append(word)
        if is_sentence_end(word):
            break
    return batch


def validate_wpm(wpm) -> int:
    if isinstance(wpm, bool) or not isinstance(wpm, int) or wpm <= 0:
        raise ValueError(f"Words per minute must be a positive integer, got {wpm!r}")
    return wpm


def format_time(ms: float) -> str:
    """Milliseconds as m:ss."""
    s = max(0, math.floor(ms / 1000))
    return f"{s // 60}:{s % 60:02d}"


@dataclass(frozen=True)
class PlaybackMetrics:
    pointer: int
    words_total: int
    percent: float
    elapsed_ms: float
    remaining_ms: float


def playback_metrics(pointer: int, words_total: int, elapsed_ms: float, wpm: int) -> PlaybackMetrics:
    percent = (pointer / words_total) * 100 if words_total else 0.0
    words_left = max(0, words_total - pointer - 1)
    return PlaybackMetrics(
        pointer=pointer,
        words_total=words_total,
        percent=percent,
        elapsed_ms=elapsed_ms,
        remaining_ms=words_left * base_interval_ms(wpm),
    )


# ---------- collaborators ----------

class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


class Display(Protocol):
    def show_word(self, split: OrpSplit) -> None: ...

    def show_progress(self, metrics: PlaybackMetrics) -> None: ...

    def show_status(self, message: str) -> None: ...


class Speech(Protocol):
    """speak() returns a future that completes when the utterance ends."""

    def speak(self, text: str) -> Any: ...

    def cancel(self) -> None: ...


class AsyncioScheduler:
    """Schedules word cycles on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)


class NullDisplay:
    def show_word(self, split: OrpSplit) -> None:
        pass

    def show_progress(self, metrics: PlaybackMetrics) -> None:
        pass

    def show_status(self, message: str) -> None:
        pass


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


# ---------- engine ----------

class PacingEngine:
    """
    Walks the selected document's words one cycle at a time.

    States: IDLE -> RUNNING <-> PAUSED, RUNNING -> DONE. Selecting a
    document or seeking leaves the engine PAUSED. At most one word cycle
    is pending and at most one utterance is in flight; both are cancelled
    on every transition out of RUNNING.
    """

    def __init__(
        self,
        session: ReadingSession | None = None,
        wpm: int = DEFAULT_WPM,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] | None = None,
        display: Display | None = None,
        speech: Speech | None = None,
        tts_enabled: bool = False,
        on_finish: Callable[[], None] | None = None,
    ):
        self.session = session or ReadingSession()
        self.wpm = validate_wpm(wpm)
        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = clock or _monotonic_ms
        self.display = display or NullDisplay()
        self.speech = speech
        self.tts_enabled = tts_enabled
        self.on_finish = on_finish
        self._timer: TimerHandle | None = None
        self._utterance = None

    # --- introspection ---

    @property
    def playback(self):
        return self.session.playback

    @property
    def state(self) -> PlaybackStatus:
        return self.session.playback.status

    @property
    def document(self) -> Document | None:
        return self.session.document

    @property
    def speaking(self) -> bool:
        return self._utterance is not None

    @property
    def has_pending_cycle(self) -> bool:
        return self._timer is not None

    def elapsed_ms(self) -> float:
        pb = self.playback
        if pb.running and pb.started_at is not None:
            return pb.elapsed_ms + (self.clock() - pb.started_at)
        return pb.elapsed_ms

    def metrics(self) -> PlaybackMetrics:
        doc = self.document
        total = len(doc.words) if doc else 0
        return playback_metrics(self.playback.pointer, total, self.elapsed_ms(), self.wpm)

    # --- documents ---

    def add_documents(self, documents: Sequence[Document]) -> None:
        """Append loaded documents; the first batch ever added gets selected."""
        if not documents:
            return
        first_new = len(self.session.documents)
        self.session.documents.extend(documents)
        if self.session.current == -1:
            self.select_document(first_new)

    def select_document(self, index: int) -> None:
        if not 0 <= index < len(self.session.documents):
            raise IndexError(f"No document at position {index}")
        self.pause()
        self.session.current = index
        pb = self.playback
        pb.pointer = 0
        pb.elapsed_ms = 0.0
        pb.started_at = None
        pb.running = False
        pb.status = PlaybackStatus.PAUSED
        self.display.show_status(f"Selected: {self.document.name}")

    # --- controls ---

    def start(self) -> None:
        doc = self.document
        if doc is None or self.state not in (PlaybackStatus.IDLE, PlaybackStatus.PAUSED):
            return
        if self.playback.pointer >= len(doc.words):
            return
        self._run()

    def resume(self) -> None:
        if self.document is None or self.state is not PlaybackStatus.PAUSED:
            return
        self._run()

    def pause(self) -> None:
        pb = self.playback
        if pb.status is not PlaybackStatus.RUNNING:
            return
        self._cancel_timer()
        self._accumulate_elapsed()
        self._cancel_speech()
        pb.status = PlaybackStatus.PAUSED
        self.display.show_status("Paused.")

    def toggle(self) -> None:
        if self.state is PlaybackStatus.RUNNING:
            self.pause()
        else:
            self.resume()

    def seek(self, position: int) -> None:
        self.pause()
        doc = self.document
        if doc is None:
            return
        self.playback.pointer = max(0, min(position, len(doc.words) - 1))
        self.playback.status = PlaybackStatus.PAUSED

    def jump(self, delta: int) -> None:
        self.seek(self.playback.pointer + delta)

    def jump_to_chapter(self, chapter: int) -> None:
        doc = self.document
        if doc is None:
            return
        if 0 <= chapter < len(doc.chapter_index):
            position = doc.chapter_index[chapter]
        else:
            position = 0
        self.seek(position)
        self.resume()

    def set_wpm(self, wpm: int) -> None:
        self.wpm = validate_wpm(wpm)

    def set_tts_enabled(self, enabled: bool) -> None:
        self.tts_enabled = enabled
        if not enabled:
            self._cancel_speech()

    # --- word cycle ---

    def _run(self) -> None:
        pb = self.playback
        pb.running = True
        pb.started_at = self.clock()
        pb.status = PlaybackStatus.RUNNING
        self.display.show_status("Reading…")
        self._step()

    def _step(self) -> None:
        self._timer = None
        pb = self.playback
        doc = self.document
        if not pb.running or doc is None:
            return
        if pb.pointer >= len(doc.words):
            self._finish()
            return

        word = doc.words[pb.pointer]
        self.display.show_word(split_word_for_orp(word))
        self.display.show_progress(self.metrics())

        delay = word_delay_ms(word, self.wpm)
        current = pb.pointer
        pb.pointer += 1

        if self.tts_enabled:
            self._maybe_speak(doc.words, current)
        if pb.running:
            self._schedule(delay)

    def _schedule(self, delay_ms: int) -> None:
        self._cancel_timer()
        self._timer = self.scheduler.call_later(delay_ms, self._step)

    def _finish(self) -> None:
        pb = self.playback
        self._cancel_timer()
        self._accumulate_elapsed()
        pb.status = PlaybackStatus.DONE
        self.display.show_status("Done.")
        if self.on_finish is not None:
            self.on_finish()

    def _accumulate_elapsed(self) -> None:
        pb = self.playback
        if pb.started_at is not None:
            pb.elapsed_ms += self.clock() - pb.started_at
        pb.started_at = None
        pb.running = False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # --- speech slot ---

    def _maybe_speak(self, words: Sequence[str], start: int) -> None:
        if self.speech is None or self._utterance is not None:
            return
        batch = collect_speech_batch(words, start)
        if not batch:
            return
        future = self.speech.speak(" ".join(batch))
        self._utterance = future
        future.add_done_callback(self._speech_done)

    def _speech_done(self, future) -> None:
        if self._utterance is future:
            self._utterance = None
        if not future.cancelled() and future.exception() is not None:
            logger.warning("Speech failed: %s", future.exception())

    def _cancel_speech(self) -> None:
        future = self._utterance
        if future is None:
            return
        self._utterance = None
        future.cancel()
        if self.speech is not None:
            self.speech.cancel()
