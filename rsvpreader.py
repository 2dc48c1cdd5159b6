#!/usr/bin/env python3
"""
rsvpreader — Speed-read PDFs one word at a time in the terminal.

Words are flashed at a fixed focus point (the ORP), paced by punctuation
and word length. Chapters come from PDF bookmarks, a typed contents page,
or heading detection. Image-only pages are OCR'd with Tesseract.

Quick start:
  1. python rsvpreader.py book.pdf --list
  2. python rsvpreader.py book.pdf --wpm 350
  3. python rsvpreader.py book.pdf --chapter 3

While reading:
  space pause/resume, left/right jump 50 words, +/- change speed,
  t toggle speech, q quit

Read-along speech (optional):
  Add ELEVENLABS_API_KEY to .env, install ffmpeg (for ffplay), then
  python rsvpreader.py book.pdf --tts
"""

import argparse
import asyncio
import logging
import os
import sys
from contextlib import contextmanager, nullcontext
from pathlib import Path

JUMP_WORDS = 50
WPM_STEP = 25
KEY_HELP = "Keys: space pause/resume, left/right jump 50 words, +/- speed, t speech, q quit"

LEFT = "\x1b[D"
RIGHT = "\x1b[C"


def check_player():
    from tts_engine import player_available

    if not player_available():
        print("ERROR: ffplay not found (needed for --tts).")
        print("Install with: brew install ffmpeg")
        sys.exit(1)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rapid serial visual presentation (RSVP) reader for PDF files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List detected chapters and word positions, then exit:
  python rsvpreader.py book.pdf --list

  # Read at 400 words per minute from chapter 2:
  python rsvpreader.py book.pdf --wpm 400 --chapter 2

  # Continue where you stopped (q or Ctrl-C prints the position):
  python rsvpreader.py book.pdf --word 12840

  # Several files: the first that loads is read unless --doc is given
  python rsvpreader.py a.pdf b.pdf --doc 2
        """,
    )
    parser.add_argument("input_paths", type=Path, nargs="+", metavar="FILE", help="PDF file(s) to load")
    parser.add_argument("--wpm", type=int, default=None, metavar="N", help="Words per minute (default: $RSVP_WPM or 300)")
    parser.add_argument(
        "--tts", action=argparse.BooleanOptionalAction, default=None,
        help="Speak along using ElevenLabs (default: $RSVP_TTS)",
    )
    parser.add_argument("--doc", type=int, default=None, metavar="N", help="Read the Nth loaded document (1-based)")
    parser.add_argument("--chapter", type=int, default=None, metavar="N", help="Start at chapter N (1-based)")
    parser.add_argument("--word", type=int, default=None, metavar="N", help="Start at word position N (0-based)")
    parser.add_argument("--no-ocr", action="store_true", default=False, help="Skip OCR for image-only pages")
    parser.add_argument("--ocr-lang", type=str, default=None, metavar="LANG", help="Tesseract language (default: eng)")
    parser.add_argument("--list", action="store_true", help="Print metadata and chapters, then exit")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def print_chapter_list(document):
    meta = document.metadata
    print(f"Title:  {meta.title}")
    print(f"Author: {meta.author}")
    print(f"Pages:  {document.page_count}")
    print(f"Words:  {len(document.words):,}")
    print(f"\nFound {len(document.chapters)} chapters:")
    print("-" * 70)
    for i, (ch, word_pos) in enumerate(zip(document.chapters, document.chapter_index), start=1):
        print(f"  {i:2d}. {ch.title[:48]:<48} p.{ch.page_index + 1:<5} word {word_pos:>7,}")
    if not document.chapters:
        print("  (no chapters found)")
    print("-" * 70)
    print()


def build_speech(settings):
    if not settings.elevenlabs_api_key:
        print("ERROR: ELEVENLABS_API_KEY not set.")
        print("Add it to .env:  ELEVENLABS_API_KEY=your_key_here")
        sys.exit(1)
    check_player()

    from elevenlabs import ElevenLabs

    from tts_engine import ElevenLabsSpeech

    client = ElevenLabs(api_key=settings.elevenlabs_api_key)
    return ElevenLabsSpeech(client, voice_id=settings.voice_id, model_id=settings.tts_model)


def split_keys(data: str) -> list[str]:
    """Split raw terminal input into keypresses; arrow keys arrive as ESC [ X."""
    keys = []
    i = 0
    while i < len(data):
        if data.startswith("\x1b[", i) and i + 2 < len(data):
            keys.append(data[i:i + 3])
            i += 3
        else:
            keys.append(data[i])
            i += 1
    return keys


def handle_key(engine, key: str) -> bool:
    """Apply one keypress to the engine. Returns False when reading should stop."""
    if key == " ":
        engine.toggle()
    elif key == LEFT:
        engine.jump(-JUMP_WORDS)
    elif key == RIGHT:
        engine.jump(JUMP_WORDS)
    elif key in ("+", "="):
        engine.set_wpm(engine.wpm + WPM_STEP)
    elif key in ("-", "_"):
        engine.set_wpm(max(WPM_STEP, engine.wpm - WPM_STEP))
    elif key in ("t", "T"):
        engine.set_tts_enabled(not engine.tts_enabled)
    elif key in ("q", "Q"):
        return False
    return True


@contextmanager
def terminal_keys(queue: asyncio.Queue):
    """Feed keypresses from an interactive stdin into `queue` while active."""
    if not sys.stdin.isatty():
        yield
        return

    import termios
    import tty

    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    loop = asyncio.get_running_loop()

    def on_input():
        for key in split_keys(os.read(fd, 32).decode(errors="ignore")):
            queue.put_nowait(key)

    tty.setcbreak(fd)
    loop.add_reader(fd, on_input)
    try:
        yield
    finally:
        loop.remove_reader(fd)
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


async def listen(engine, keys: asyncio.Queue, finished: asyncio.Event) -> None:
    while True:
        key = await keys.get()
        if not handle_key(engine, key):
            finished.set()
            return


async def read(engine, start_chapter=None, start_word=None, keys=None) -> None:
    """
    Read until the document is done or the user quits. Keypresses come
    from `keys` when given, otherwise from the terminal.
    """
    from models import PlaybackStatus

    finished = asyncio.Event()
    engine.on_finish = finished.set
    if start_chapter is not None:
        engine.jump_to_chapter(start_chapter)
    else:
        if start_word is not None:
            engine.seek(start_word)
        engine.start()
    if engine.state is not PlaybackStatus.RUNNING:
        return

    if keys is None:
        keys = asyncio.Queue()
        source = terminal_keys(keys)
    else:
        source = nullcontext()
    with source:
        listener = asyncio.create_task(listen(engine, keys, finished))
        try:
            await finished.wait()
        finally:
            # Ctrl-C cancels this task; stop timers and speech while the loop is alive
            listener.cancel()
            engine.pause()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Lazy imports keep --help fast
    from settings import load_settings

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    if args.wpm is not None:
        settings.wpm = args.wpm
    if args.tts is not None:
        settings.tts_enabled = args.tts
    if args.ocr_lang:
        settings.ocr_lang = args.ocr_lang

    from pacing import PacingEngine, validate_wpm
    from parsers import load_documents
    from parsers.pdf_parser import TesseractOcr

    try:
        validate_wpm(settings.wpm)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    ocr = None if args.no_ocr else TesseractOcr(settings.ocr_lang)
    print(f"Loading {len(args.input_paths)} PDF(s)...")
    documents, failures = load_documents(
        args.input_paths, ocr=ocr, scale=settings.ocr_scale, show_progress=True,
    )
    for path, message in failures:
        print(f"Error loading {path.name}: {message}")
    if not documents:
        print("No valid PDFs were loaded.")
        sys.exit(1)

    if args.list:
        for document in documents:
            print(f"\n=== {document.name} ===")
            print_chapter_list(document)
        return

    doc_index = 0
    if args.doc is not None:
        if not 1 <= args.doc <= len(documents):
            print(f"ERROR: --doc {args.doc} out of range (loaded {len(documents)} documents)")
            sys.exit(1)
        doc_index = args.doc - 1
    document = documents[doc_index]
    if args.chapter is not None and not 1 <= args.chapter <= len(document.chapters):
        print(f"ERROR: --chapter {args.chapter} out of range ({document.name} has {len(document.chapters)} chapters)")
        sys.exit(1)

    speech = build_speech(settings) if settings.tts_enabled else None

    from terminal_display import TerminalDisplay

    print(KEY_HELP)
    with TerminalDisplay() as display:
        engine = PacingEngine(
            wpm=settings.wpm, display=display, speech=speech, tts_enabled=settings.tts_enabled,
        )
        engine.add_documents(documents)
        if doc_index:
            engine.select_document(doc_index)

        chapter = args.chapter - 1 if args.chapter is not None else None
        try:
            asyncio.run(read(engine, start_chapter=chapter, start_word=args.word))
        except KeyboardInterrupt:
            engine.pause()
        finally:
            if speech is not None:
                speech.shutdown()

    pointer = engine.playback.pointer
    total = len(engine.document.words)
    if pointer < total:
        print(f"\nPaused at word {pointer:,} of {total:,}. Resume with: --word {pointer}")
    else:
        print(f"\nDone! Read {total:,} words.")


if __name__ == "__main__":
    main()
