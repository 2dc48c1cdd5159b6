"""parsers/extraction.py — Per-page text extraction with an OCR fallback."""

import logging

from tqdm import tqdm

from parsers.base import (
    DocumentSource,
    ExtractionResult,
    OcrEngine,
    normalize_text,
    split_lines,
    tokenize,
)

logger = logging.getLogger(__name__)

MIN_NATIVE_WORDS = 5
OCR_SCALE = 2.0


def extract_text_with_ocr(
    source: DocumentSource,
    ocr: OcrEngine | None = None,
    scale: float = OCR_SCALE,
    show_progress: bool = False,
    desc: str = "",
) -> ExtractionResult:
    """
    Walk pages in order, collecting normalized text and word offsets.
    Pages with fewer than MIN_NATIVE_WORDS native words are rendered and
    handed to `ocr`; OCR trouble is logged and the native text is kept.
    A page that cannot be loaded at all raises.
    """
    result = ExtractionResult()
    page_count = source.page_count

    pages = tqdm(
        range(1, page_count + 1),
        desc=f"  {desc[:50]}" if desc else "  Extracting",
        unit="page",
        disable=not show_progress,
    )
    for number in pages:
        page = source.get_page(number)
        fragments = [f for f in page.text_fragments() if f]
        page_text = normalize_text(" ".join(fragments))
        lines = split_lines(fragments)

        if ocr is not None and len(tokenize(page_text)) < MIN_NATIVE_WORDS:
            try:
                raster = page.render(scale)
                recognized = ocr.recognize(raster)
                page_text = normalize_text(recognized)
                lines = split_lines([recognized])
            except Exception as e:
                logger.warning("OCR failed on page %d: %s", number, e)

        words = tokenize(page_text)
        result.text_by_page.append(page_text)
        result.lines_by_page.append(lines)
        result.word_offsets_by_page.append(len(result.words))
        result.words.extend(words)

    return result
