"""parsers/pdf_parser.py — Load PDF files into Documents using pymupdf."""

from pathlib import Path

from models import BookMetadata, Document
from parsers.base import OcrEngine, OutlineEntry


class PdfPage:
    """Page handle over a pymupdf page."""

    def __init__(self, page):
        self._page = page

    def text_fragments(self) -> list[str]:
        return self._page.get_text("text").splitlines()

    def render(self, scale: float):
        import fitz  # pymupdf
        from PIL import Image

        pix = self._page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)


class PdfDocumentSource:
    """
    Document source over an open pymupdf document.
    Outline destinations are 1-based page numbers, or named destinations
    resolved through the document's name tree.
    """

    def __init__(self, doc):
        self._doc = doc
        self._names = None

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def get_page(self, number: int) -> PdfPage:
        return PdfPage(self._doc.load_page(number - 1))

    def get_outline(self) -> list[OutlineEntry]:
        toc = self._doc.get_toc(simple=False)  # [level, title, page_number, dest]
        if not toc:
            return []

        # Keep the shallowest level and the one directly beneath it
        min_level = min(entry[0] for entry in toc)
        outline: list[OutlineEntry] = []
        for level, title, page, *rest in toc:
            details = rest[0] if rest else {}
            if page and page > 0:
                dest = page
            else:
                dest = (details or {}).get("nameddest") or (details or {}).get("name")
            entry = OutlineEntry(title=title, dest=dest)
            if level == min_level:
                outline.append(entry)
            elif level == min_level + 1 and outline:
                outline[-1].items.append(entry)
        return outline

    def get_destination(self, name: str) -> int:
        if self._names is None:
            self._names = self._doc.resolve_names()
        target = self._names[name]
        return int(target["page"]) + 1

    def resolve_dest_to_page_index(self, dest) -> int:
        page_index = int(dest) - 1
        if not 0 <= page_index < self._doc.page_count:
            raise ValueError(f"Destination page {dest} outside document")
        return page_index


class TesseractOcr:
    """OCR collaborator backed by pytesseract."""

    def __init__(self, lang: str = "eng"):
        self.lang = lang

    def recognize(self, raster) -> str:
        import pytesseract

        return pytesseract.image_to_string(raster, lang=self.lang)


def parse_pdf(
    file_path: Path,
    ocr: OcrEngine | None = None,
    scale: float = 2.0,
    show_progress: bool = False,
) -> Document:
    """
    Parse a PDF into a Document.
    Text comes from the page text layer, with OCR for near-empty pages.
    Chapters: (1) PDF bookmarks, (2) typed contents page, (3) heading patterns.
    """
    import fitz  # pymupdf

    from parsers import build_document

    file_path = Path(file_path)
    doc = fitz.open(str(file_path))
    try:
        pdf_meta = doc.metadata or {}
        title = (pdf_meta.get("title") or "").strip() or file_path.stem.replace("_", " ").title()
        author = (pdf_meta.get("author") or "").strip() or "Unknown"
        metadata = BookMetadata(title=title, author=author, source_format="pdf")

        return build_document(
            name=file_path.name,
            source=PdfDocumentSource(doc),
            metadata=metadata,
            ocr=ocr,
            scale=scale,
            show_progress=show_progress,
        )
    finally:
        doc.close()
