"""Structure extraction: chapters, chunks, images and links."""

from .chapters import ChapterDetector, PageOffsetIndex
from .chunker import PageAwareChunker, TextChunker, attach_links
from .images import ImageCorrelator
from .links import LinkResolver, LinkValidation, extract_page_numbers, validate_links

__all__ = [
    "ChapterDetector",
    "ImageCorrelator",
    "LinkResolver",
    "LinkValidation",
    "PageAwareChunker",
    "PageOffsetIndex",
    "TextChunker",
    "attach_links",
    "extract_page_numbers",
    "validate_links",
]
