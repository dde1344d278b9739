"""Data model for resolved book structure."""

from .types import (
    Book,
    BookMetadata,
    BoundingBox,
    Chapter,
    ChapterCandidate,
    ChapterNumber,
    ChapterSource,
    Chunk,
    ChunkType,
    Confidence,
    ImageRef,
    LinkRef,
    NavigationType,
    OutlineNode,
    PageImageCount,
    PageText,
    RawTextRun,
    ResolutionMethod,
    ResolvedLink,
    TocResult,
)

__all__ = [
    "Book",
    "BookMetadata",
    "BoundingBox",
    "Chapter",
    "ChapterCandidate",
    "ChapterNumber",
    "ChapterSource",
    "Chunk",
    "ChunkType",
    "Confidence",
    "ImageRef",
    "LinkRef",
    "NavigationType",
    "OutlineNode",
    "PageImageCount",
    "PageText",
    "RawTextRun",
    "ResolutionMethod",
    "ResolvedLink",
    "TocResult",
]
