"""parsers/toc.py — Chapter detection: bookmarks, typed contents page, headings."""

import logging
import math
import re
from typing import Sequence

from models import Chapter
from parsers.base import DocumentSource, ExtractionResult, OutlineEntry, normalize_text

logger = logging.getLogger(__name__)

CONTENTS_SCAN_PAGES = 8
HEADING_SCAN_LINES = 6

_NUMBER_PREFIX = re.compile(r"^\d+\s*[-.)]?\s*")
_CONTENTS_LINE = re.compile(r"^(?:table\s+of\s+)?contents[.:]*$", re.IGNORECASE)
_CONTENTS_ENTRY = re.compile(r"^(?P<title>[^\d]+?)[\s.·]{2,}(?P<page>\d{1,4})$")
_TITLE_CASE_WORD = re.compile(r"^[A-Z][a-z'’\-]+$")
_HEADING_BLACKLIST = re.compile(r"^(?:table of contents|contents|index)$", re.IGNORECASE)


def _dedupe_by_page(chapters: list[Chapter]) -> list[Chapter]:
    seen = set()
    result = []
    for ch in chapters:
        if ch.page_index in seen:
            continue
        seen.add(ch.page_index)
        result.append(ch)
    return result


# ---------- tier 1: bookmarks ----------

def _resolve_page_index(source, entry: OutlineEntry) -> int | None:
    dest = entry.dest
    if dest is None:
        return None
    try:
        if isinstance(dest, str):
            dest = source.get_destination(dest)
        page_index = source.resolve_dest_to_page_index(dest)
    except Exception as e:
        logger.debug("Outline destination for %r not resolvable: %s", entry.title, e)
        return None
    if isinstance(page_index, bool) or not isinstance(page_index, int):
        return None
    return page_index


def _outline_chapter(source, entry: OutlineEntry) -> Chapter | None:
    if entry is None:
        return None
    title = _NUMBER_PREFIX.sub("", normalize_text(entry.title or "")).strip()
    if not title:
        return None
    page_index = _resolve_page_index(source, entry)
    if page_index is None:
        return None
    return Chapter(title=title, page_index=page_index)


def chapters_from_outline(source: DocumentSource) -> list[Chapter]:
    """Top-level bookmarks and their direct children, in traversal order."""
    get_outline = getattr(source, "get_outline", None)
    if get_outline is None:
        return []
    outline = get_outline() or []

    chapters = []
    for entry in outline:
        for candidate in [entry, *((entry.items or []) if entry else [])]:
            chapter = _outline_chapter(source, candidate)
            if chapter:
                chapters.append(chapter)
    return _dedupe_by_page(chapters)


# ---------- tier 2: typed "Contents" page ----------

def find_contents_page(extraction: ExtractionResult) -> int | None:
    pages = extraction.lines_by_page[:CONTENTS_SCAN_PAGES]
    for page_index, lines in enumerate(pages):
        if any(_CONTENTS_LINE.match(line) for line in lines):
            return page_index
    return None


def parse_contents_line(line: str) -> tuple[str, int] | None:
    """'Introduction .......... 5' -> ('Introduction', 5)."""
    m = _CONTENTS_ENTRY.match(normalize_text(line))
    if not m:
        return None
    title = re.sub(r"[.:]+$", "", normalize_text(m.group("title"))).strip()
    if not title:
        return None
    return title, int(m.group("page"))


def chapters_from_contents_page(extraction: ExtractionResult) -> list[Chapter]:
    """
    Parse 'Title ..... 12' lines from a contents page in the first pages.
    Each title is located by searching every page's text, the contents page
    included; the printed page number minus one is used when it is not found.
    """
    contents_page = find_contents_page(extraction)
    if contents_page is None:
        return []

    candidates = []
    for line in extraction.lines_by_page[contents_page]:
        parsed = parse_contents_line(line)
        if parsed:
            candidates.append(parsed)
    if not candidates:
        return []

    haystacks = [normalize_text(text).lower() for text in extraction.text_by_page]
    chapters = []
    for title, printed_page in candidates:
        needle = normalize_text(title).lower()
        found = next((p for p, text in enumerate(haystacks) if needle in text), None)
        page_index = found if found is not None else printed_page - 1
        if page_index >= 0:
            chapters.append(Chapter(title=title, page_index=page_index))
    return _dedupe_by_page(chapters)


# ---------- tier 3: heading heuristics ----------

def looks_heading(line: str) -> bool:
    """ALL-CAPS or mostly Title Case lines with enough letters in them."""
    if not line:
        return False
    no_digits = re.sub(r"\d", "", line)
    alpha = len(re.sub(r"[^A-Za-z]", "", no_digits))
    if alpha / max(1, len(line)) < 0.4:
        return False
    if _HEADING_BLACKLIST.match(line):
        return False
    words = line.split()
    is_all_caps = re.fullmatch(r"[^a-z]+", line) is not None and re.search(r"[A-Z]", line) is not None
    title_words = sum(1 for w in words if _TITLE_CASE_WORD.match(w))
    is_title_case = title_words >= math.ceil(len(words) * 0.7)
    return is_all_caps or is_title_case


def chapters_from_headings(extraction: ExtractionResult) -> list[Chapter]:
    chapters = []
    for page_index, lines in enumerate(extraction.lines_by_page):
        head = [line for line in (normalize_text(raw) for raw in lines) if line][:HEADING_SCAN_LINES]
        title = next((line for line in head if looks_heading(line)), None)
        if title and len(title.split(" ")) > 1:
            chapters.append(Chapter(title=title, page_index=page_index))
    return _dedupe_by_page(chapters)


# ---------- cascade ----------

def _attempt(tier, *args) -> list[Chapter]:
    try:
        return tier(*args)
    except Exception as e:
        logger.warning("TOC tier %s failed: %s", getattr(tier, "__name__", tier), e)
        return []


def detect_toc(source: DocumentSource, extraction: ExtractionResult) -> list[Chapter]:
    """
    Detect chapters. Strategy: (1) PDF bookmarks, (2) typed contents page,
    (3) heading patterns. The first tier with any result wins.
    """
    chapters = _attempt(chapters_from_outline, source)
    if chapters:
        logger.info("Chapters from outline: %d", len(chapters))
        return chapters
    chapters = _attempt(chapters_from_contents_page, extraction)
    if chapters:
        logger.info("Chapters from contents page: %d", len(chapters))
        return chapters
    chapters = _attempt(chapters_from_headings, extraction)
    logger.info("Chapters from headings: %d", len(chapters))
    return chapters


def build_chapter_word_index(chapters: Sequence[Chapter], word_offsets_by_page: Sequence[int]) -> list[int]:
    """Word position where each chapter's page starts (0 when out of range)."""
    index = []
    for ch in chapters:
        if 0 <= ch.page_index < len(word_offsets_by_page):
            index.append(word_offsets_by_page[ch.page_index])
        else:
            index.append(0)
    return index
