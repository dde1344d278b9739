"""Type definitions for the resolved book structure."""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

ChapterNumber = Union[int, str, None]


class ChunkType(str, Enum):
    """Kind of content a chunk carries."""

    TEXT = "text"
    IMAGE = "image"


class ChapterSource(str, Enum):
    """Signal a list of chapter candidates was extracted from."""

    BOOKMARKS = "bookmarks"
    TEXT_SEARCH = "text_search"


class ResolutionMethod(str, Enum):
    """Heuristic that produced a link target, in decreasing order of trust."""

    FOOTNOTE_DIRECT = "footnote-direct"
    TEXT_CORRECTED = "text-corrected"
    COORDINATES = "coordinates"
    PAGE_FALLBACK = "page-fallback"


class Confidence(str, Enum):
    """Qualitative trust label for a heuristic association."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very-low"


class NavigationType(str, Enum):
    """How a reader application should navigate to a link destination."""

    COORDINATE = "coordinate"
    PATTERN = "pattern"
    TEXT_SEARCH = "text_search"


@dataclass(frozen=True)
class RawTextRun:
    """Atomic positioned text unit produced by the document source."""

    text: str
    page_number: int
    x: float
    y: float
    font_id: str = ""
    width: float = 0.0
    height: float = 0.0


@dataclass
class BoundingBox:
    """Axis-aligned box in page coordinates."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        """Check whether a point lies inside the box grown by ``tolerance`` on each axis."""
        within_x = self.min_x - tolerance <= x <= self.max_x + tolerance
        within_y = self.min_y - tolerance <= y <= self.max_y + tolerance
        return within_x and within_y

    def distance_to(self, x: float, y: float) -> float:
        """Euclidean distance from the box center to a point."""
        return math.hypot(x - self.center_x, y - self.center_y)

    @classmethod
    def from_runs(cls, runs: list[RawTextRun]) -> Optional["BoundingBox"]:
        """Bounds of a set of runs, or None when there are none."""
        if not runs:
            return None
        return cls(
            min_x=min(run.x for run in runs),
            min_y=min(run.y for run in runs),
            max_x=max(run.x + run.width for run in runs),
            max_y=max(run.y for run in runs),
        )

    def to_dict(self) -> dict:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "centerX": self.center_x,
            "centerY": self.center_y,
        }


@dataclass
class OutlineNode:
    """Node of a document outline (bookmark) tree."""

    title: str
    dest: Any = None
    items: list["OutlineNode"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "OutlineNode":
        return cls(
            title=data.get("title", ""),
            dest=data.get("dest"),
            items=[cls.from_dict(child) for child in data.get("items", [])],
        )


@dataclass
class PageImageCount:
    """Number of images painted on a page, from content-stream inspection."""

    page_number: int
    image_count: int


@dataclass
class ChapterCandidate:
    """Candidate chapter heading discovered in the outline or a contents page."""

    chapter_number: ChapterNumber
    chapter_title: str
    starting_page: Union[int, str, None] = None
    original_title: str = ""

    @property
    def page(self) -> Optional[int]:
        """Starting page as a physical page number, if it is one."""
        if isinstance(self.starting_page, int) and self.starting_page > 0:
            return self.starting_page
        return None

    def to_dict(self) -> dict:
        return {
            "chapterNumber": self.chapter_number,
            "chapterTitle": self.chapter_title,
            "startingPage": self.starting_page,
            "originalTitle": self.original_title,
        }


@dataclass
class TocResult:
    """Chapter candidates together with the signal they came from."""

    source: ChapterSource
    candidates: list[ChapterCandidate] = field(default_factory=list)


@dataclass
class PageText:
    """Cleaned text of one page belonging to a chapter."""

    page_number: int
    text: str
    bounds: Optional[BoundingBox] = None


@dataclass
class LinkRef:
    """Raw internal cross-reference read from the document."""

    text: str
    page_number: int
    destination_page: int
    destination_coordinates: Optional[tuple[float, float]] = None

    @property
    def navigation_type(self) -> NavigationType:
        """Best navigation method for this link.

        Precise coordinates win; short numeric or symbolic text (footnote
        markers) is located by pattern; anything else by text search.
        """
        if self.destination_coordinates is not None:
            return NavigationType.COORDINATE
        marker = (self.text or "").strip()
        if marker and len(marker) <= 3 and re.fullmatch(r"[0-9a-zA-Z*†‡§]+", marker):
            return NavigationType.PATTERN
        return NavigationType.TEXT_SEARCH

    def to_dict(self) -> dict:
        coords = None
        if self.destination_coordinates is not None:
            coords = {"x": self.destination_coordinates[0], "y": self.destination_coordinates[1]}
        return {
            "text": self.text,
            "pageNumber": self.page_number,
            "destinationPage": self.destination_page,
            "destinationCoordinates": coords,
            "navigationType": self.navigation_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LinkRef":
        coords = data.get("destinationCoordinates")
        return cls(
            text=data.get("text") or data.get("linkText") or "",
            page_number=data["pageNumber"],
            destination_page=data["destinationPage"],
            destination_coordinates=(coords["x"], coords["y"]) if coords else None,
        )


@dataclass
class ResolvedLink:
    """A link together with the chunk it was resolved to."""

    link: LinkRef
    target_chunk_id: int
    method: ResolutionMethod
    confidence: Confidence
    chapter_number: ChapterNumber = None

    @property
    def text(self) -> str:
        return self.link.text

    @property
    def page_number(self) -> int:
        return self.link.page_number

    def to_dict(self) -> dict:
        return {
            **self.link.to_dict(),
            "targetChunkId": self.target_chunk_id,
            "method": self.method.value,
            "confidence": self.confidence.value,
            "chapterNumber": self.chapter_number,
        }


@dataclass
class ImageRef:
    """Page-tagged image record produced by the image correlator."""

    page_number: int
    image_name: str
    image_alt: str
    extracted: bool = False
    placeholder: bool = False
    source: Any = None  # Backing asset handle, None for placeholders

    def to_dict(self) -> dict:
        return {
            "pageNumber": self.page_number,
            "imageName": self.image_name,
            "imageAlt": self.image_alt,
            "extracted": self.extracted,
            "placeholder": self.placeholder,
        }


@dataclass
class Chunk:
    """Smallest addressable unit of chapter content."""

    text: str
    id: int = 0
    index: int = 0
    page_number: Optional[int] = None
    type: ChunkType = ChunkType.TEXT
    coordinates: Optional[BoundingBox] = None
    links: list[ResolvedLink] = field(default_factory=list)

    chapter_number: ChapterNumber = None
    chapter_title: str = ""
    is_link_target: bool = False

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "index": self.index,
            "text": self.text,
            "pageNumber": self.page_number,
            "type": self.type.value,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "links": [link.to_dict() for link in self.links],
            "targetLink": self.is_link_target,
        }


@dataclass
class Chapter:
    """A chapter with its page range, chunks and images.

    ``raw_text`` is the exact slice of the text stream the chapter was cut
    from; ``pages`` carries per-page text when page boundaries are known.
    """

    number: ChapterNumber
    title: str
    start_page: Optional[int] = None
    end_page: Optional[int] = None

    chunks: list[Chunk] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    raw_text: str = ""
    pages: list[PageText] = field(default_factory=list)
    page_numbers: list[int] = field(default_factory=list)
    word_count: int = 0
    source: str = "pattern"

    @property
    def page_range_length(self) -> int:
        if self.start_page is None or self.end_page is None:
            return 1
        return self.end_page - self.start_page + 1

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "startPageNumber": self.start_page,
            "endPageNumber": self.end_page,
            "chunkCount": len(self.chunks),
            "wordCount": self.word_count,
            "images": [img.to_dict() for img in self.images],
            "chunks": [chunk.to_dict() for chunk in self.chunks],
        }


@dataclass
class BookMetadata:
    """Descriptive metadata of the book."""

    title: str
    author: str = "Unknown"
    page_count: int = 0
    filename: str = ""
    creation_date: Optional[str] = None
    modification_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "pageCount": self.page_count,
            "filename": self.filename,
            "creationDate": self.creation_date,
            "modificationDate": self.modification_date,
        }


@dataclass
class Book:
    """Resolved navigable model of a book."""

    metadata: BookMetadata
    chapters: list[Chapter] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    links: list[ResolvedLink] = field(default_factory=list)
    unresolved_links: list[LinkRef] = field(default_factory=list)

    @property
    def all_chunks(self) -> list[Chunk]:
        """Every chunk in document order."""
        return [chunk for chapter in self.chapters for chunk in chapter.chunks]

    def to_dict(self) -> dict:
        return {
            "book": self.metadata.to_dict(),
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "images": [img.to_dict() for img in self.images],
            "links": [link.to_dict() for link in self.links],
        }
