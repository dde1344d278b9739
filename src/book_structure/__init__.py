"""Resolve the logical structure of paginated books."""

from book_structure.analysis import StructureAnalyzer, StructureStatistics
from book_structure.config import BookConfig
from book_structure.exceptions import (
    BookStructureError,
    ConfigurationError,
    DestinationError,
    ImageExtractionError,
    SourceError,
)
from book_structure.models import Book, Chapter, Chunk, ImageRef, LinkRef, ResolvedLink
from book_structure.parsers import DocumentSource, InMemorySource, PDFSource
from book_structure.pipeline import BookStructurePipeline

__all__ = [
    "Book",
    "BookConfig",
    "BookStructureError",
    "BookStructurePipeline",
    "Chapter",
    "Chunk",
    "ConfigurationError",
    "DestinationError",
    "DocumentSource",
    "ImageExtractionError",
    "ImageRef",
    "InMemorySource",
    "LinkRef",
    "PDFSource",
    "ResolvedLink",
    "SourceError",
    "StructureAnalyzer",
    "StructureStatistics",
]
