"""terminal_display.py — Render the RSVP word and reading stats with rich."""

from rich.console import Console, Group
from rich.live import Live
from rich.text import Text

from pacing import OrpSplit, PlaybackMetrics, format_time

# Column where the ORP character is pinned
ORP_COLUMN = 16


def render_word(split: OrpSplit, column: int = ORP_COLUMN) -> Text:
    pad = max(0, column - len(split.pre))
    text = Text(" " * pad)
    text.append(split.pre, style="bold")
    text.append(split.orp, style="bold red")
    text.append(split.post, style="bold")
    return text


def render_stats(metrics: PlaybackMetrics | None) -> Text:
    if metrics is None:
        return Text("")
    return Text(
        f"{metrics.percent:5.1f}%  "
        f"{metrics.pointer:,}/{metrics.words_total:,} words  "
        f"elapsed {format_time(metrics.elapsed_ms)}  "
        f"remaining {format_time(metrics.remaining_ms)}",
        style="dim",
    )


class TerminalDisplay:
    """Display collaborator backed by a rich Live region."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._word = Text("")
        self._metrics: PlaybackMetrics | None = None
        self._status = ""
        self._live: Live | None = None

    def __enter__(self):
        self._live = Live(self._render(), console=self.console, auto_refresh=False, transient=False)
        self._live.__enter__()
        return self

    def __exit__(self, *exc):
        live, self._live = self._live, None
        return live.__exit__(*exc) if live else False

    def _render(self) -> Group:
        guide = Text(" " * ORP_COLUMN + "▼", style="red")
        return Group(guide, self._word, render_stats(self._metrics), Text(self._status, style="italic"))

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._render(), refresh=True)

    def show_word(self, split: OrpSplit) -> None:
        self._word = render_word(split)
        self._refresh()

    def show_progress(self, metrics: PlaybackMetrics) -> None:
        self._metrics = metrics
        self._refresh()

    def show_status(self, message: str) -> None:
        self._status = message
        self._refresh()
