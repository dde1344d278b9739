"""Utility functions."""

from .text import (
    TextLine,
    clean_page_numbers,
    fuzzy_match,
    group_runs_into_lines,
    normalize,
    split_sentences,
    word_count,
)

__all__ = [
    "TextLine",
    "clean_page_numbers",
    "fuzzy_match",
    "group_runs_into_lines",
    "normalize",
    "split_sentences",
    "word_count",
]
