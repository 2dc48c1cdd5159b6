import logging

import pytest

from fakes import FakeSource, RecordingOcr
from parsers.extraction import extract_text_with_ocr

LONG_PAGE = "The quick brown fox jumps over the lazy dog again"


def test_offsets_count_tokens_of_previous_pages() -> None:
    pages = ["one two three four five six", "", "a b c d e", "  spaced   out words here now "]
    result = extract_text_with_ocr(FakeSource(pages))

    assert result.word_offsets_by_page == [0, 6, 6, 11]
    assert len(result.words) == 16
    for i in range(len(pages) - 1):
        delta = result.word_offsets_by_page[i + 1] - result.word_offsets_by_page[i]
        assert delta == len(result.text_by_page[i].split())
    assert result.all_text.split() == result.words


def test_fragments_are_joined_and_normalized() -> None:
    result = extract_text_with_ocr(FakeSource(["“Quoted”   line\nsecond  line here today"]))
    assert result.text_by_page == ['"Quoted" line second line here today']
    assert result.lines_by_page == [['"Quoted" line', "second line here today"]]


def test_ocr_runs_only_for_sparse_pages() -> None:
    pages = ["Figure 1", "", "p. 3"] + [LONG_PAGE] * 10
    source = FakeSource(pages)
    ocr = RecordingOcr("scanned text from an image only page")

    result = extract_text_with_ocr(source, ocr)

    assert ocr.rasters == ["raster-1", "raster-2", "raster-3"]
    assert [h.renders for h in source.handles[:3]] == [[2.0], [2.0], [2.0]]
    assert all(h.renders == [] for h in source.handles[3:])
    assert result.text_by_page[:3] == ["scanned text from an image only page"] * 3
    assert result.text_by_page[3] == LONG_PAGE
    assert result.word_offsets_by_page[:4] == [0, 7, 14, 21]


def test_ocr_failure_keeps_native_text(caplog: pytest.LogCaptureFixture) -> None:
    ocr = RecordingOcr(fail=True)
    with caplog.at_level(logging.WARNING, logger="parsers.extraction"):
        result = extract_text_with_ocr(FakeSource(["Only three words", LONG_PAGE]), ocr)

    assert result.text_by_page[0] == "Only three words"
    assert result.words[:3] == ["Only", "three", "words"]
    assert "OCR failed on page 1" in caplog.text


def test_render_failure_is_soft() -> None:
    ocr = RecordingOcr()
    result = extract_text_with_ocr(FakeSource(["tiny"], fail_render=True), ocr)
    assert result.text_by_page == ["tiny"]
    assert ocr.rasters == []


def test_ocr_lines_replace_native_lines() -> None:
    ocr = RecordingOcr("CHAPTER ONE\nIt begins here with words")
    result = extract_text_with_ocr(FakeSource(["12"]), ocr)
    assert result.lines_by_page == [["CHAPTER ONE", "It begins here with words"]]


def test_unreadable_page_propagates() -> None:
    source = FakeSource([LONG_PAGE, OSError("broken xref")])
    with pytest.raises(OSError, match="broken xref"):
        extract_text_with_ocr(source, RecordingOcr())


def test_without_ocr_sparse_pages_are_kept_as_is() -> None:
    result = extract_text_with_ocr(FakeSource(["", "x"]), None)
    assert result.text_by_page == ["", "x"]
    assert result.word_offsets_by_page == [0, 0]
