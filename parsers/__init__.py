"""parsers/ — Document ingestion: text extraction, chapter detection, loading."""

from pathlib import Path

from models import BookMetadata, Document
from parsers.base import DocumentSource, OcrEngine
from parsers.extraction import extract_text_with_ocr
from parsers.toc import build_chapter_word_index, detect_toc

SUPPORTED_EXTENSIONS = {".pdf"}


def build_document(
    name: str,
    source: DocumentSource,
    metadata: BookMetadata,
    ocr: OcrEngine | None = None,
    scale: float = 2.0,
    show_progress: bool = False,
) -> Document:
    """Extract text, detect chapters and index them into the word sequence."""
    extraction = extract_text_with_ocr(
        source, ocr, scale=scale, show_progress=show_progress, desc=name,
    )
    chapters = detect_toc(source, extraction)
    chapter_index = build_chapter_word_index(chapters, extraction.word_offsets_by_page)
    return Document(
        name=name,
        metadata=metadata,
        text_by_page=tuple(extraction.text_by_page),
        word_offsets_by_page=tuple(extraction.word_offsets_by_page),
        words=tuple(extraction.words),
        chapters=tuple(chapters),
        chapter_index=tuple(chapter_index),
    )


def load_document(file_path: Path, **options) -> Document:
    """Dispatch to the appropriate parser based on file extension."""
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()

    if suffix == ".pdf":
        from parsers.pdf_parser import parse_pdf
        return parse_pdf(file_path, **options)
    else:
        raise ValueError(
            f"Unsupported file format: '{suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )


def load_documents(paths, loader=load_document, **options) -> tuple[list[Document], list[tuple[Path, str]]]:
    """
    Load files one at a time. A file that fails to load is reported as
    (path, message) and the rest of the batch still loads.
    """
    documents = []
    failures = []
    for path in paths:
        path = Path(path)
        try:
            documents.append(loader(path, **options))
        except Exception as e:
            failures.append((path, str(e) or e.__class__.__name__))
    return documents, failures
