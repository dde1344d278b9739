"""Document sources and table of contents extraction."""

from .base import DocumentSource
from .memory import InMemorySource
from .pdf import PDFSource
from .toc import (
    BookmarkStrategy,
    TextSearchStrategy,
    TOCExtractor,
    TOCStrategy,
    parse_bookmark_title,
    parse_toc_line,
)

__all__ = [
    "BookmarkStrategy",
    "DocumentSource",
    "InMemorySource",
    "PDFSource",
    "TextSearchStrategy",
    "TOCExtractor",
    "TOCStrategy",
    "parse_bookmark_title",
    "parse_toc_line",
]
