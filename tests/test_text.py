import pytest

from parsers.base import normalize_text, split_lines, tokenize


def test_normalize_folds_curly_quotes() -> None:
    assert normalize_text("“Hi,” she said, ‘it’s fine’") == "\"Hi,\" she said, 'it's fine'"


def test_normalize_collapses_and_trims_whitespace() -> None:
    assert normalize_text("  one \n\t two  three  ") == "one two three"


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "plain text", "“quoted”\n\nparagraph  gap", "tabs\tand\nnewlines ‘x’"],
)
def test_normalize_is_idempotent(raw: str) -> None:
    once = normalize_text(raw)
    assert normalize_text(once) == once


def test_tokenize_splits_on_whitespace_runs() -> None:
    assert tokenize("a  b\tc\nd") == ["a", "b", "c", "d"]
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_split_lines_drops_blank_lines_and_normalizes() -> None:
    fragments = ["  Table   of Contents \n\n", "Introduction .... 5\n  \nEnd"]
    assert split_lines(fragments) == ["Table of Contents", "Introduction .... 5", "End"]
