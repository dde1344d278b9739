"""Resolve internal cross-references to target chunks."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from book_structure.models import Chapter, Chunk, Confidence, LinkRef, ResolutionMethod, ResolvedLink

logger = logging.getLogger(__name__)

_FOOTNOTE_MARKER_RE = re.compile(r"^\d+$")
_NUMBERED_CHUNK_RE = re.compile(r"^\d+\s")
_PAGE_LIST_RE = re.compile(
    r"(?:\s|^)(\d{1,3}(?:[–-]\d{1,3})?(?:,\s*\d{1,3}(?:[–-]\d{1,3})?)*)(?=\s|$|[A-Za-z])"
)
_RANGE_SEPARATOR_RE = re.compile(r"[–-]")

MAX_PAGE_NUMBER = 999
MINIMAL_CONTENT_LENGTH = 50

DESTINATION_PAGE_NOT_FOUND = "destination-page-not-found"
DESTINATION_PAGE_MINIMAL_CONTENT = "destination-page-minimal-content"
EMPTY_LINK_TEXT = "empty-link-text"
SELF_REFERENCING_LINK = "self-referencing-link"


def _expand_range(start_token: str, end_token: str) -> list[int]:
    start = int(start_token)
    end = int(end_token)

    # Short form ("150–51"): the end borrows the start's leading digits
    if len(end_token) < len(start_token):
        base = 10 ** len(end_token)
        end = start - start % base + end
        if end < start:
            end += base

    if end < start:
        return [start]
    return list(range(start, end + 1))


def extract_page_numbers(text: str) -> list[int]:
    """Page numbers mentioned in a link's text, as in index entries.

    Understands comma-separated lists and en-dash or hyphen ranges,
    including short-form ranges (``"150–51"`` is 150 and 151).

    Returns:
        Sorted, de-duplicated page numbers
    """
    if not text:
        return []

    pages = set()
    for match in _PAGE_LIST_RE.finditer(text):
        for part in match.group(1).split(","):
            part = part.strip()
            tokens = _RANGE_SEPARATOR_RE.split(part)
            if len(tokens) == 2:
                pages.update(_expand_range(tokens[0], tokens[1]))
            else:
                pages.add(int(part))

    return sorted(page for page in pages if 0 < page <= MAX_PAGE_NUMBER)


def chunks_by_page(chunks: list[Chunk]) -> dict[int, list[Chunk]]:
    grouped: dict[int, list[Chunk]] = {}
    for chunk in chunks:
        if chunk.page_number is not None:
            grouped.setdefault(chunk.page_number, []).append(chunk)
    return grouped


class LinkResolver:
    """Map a cross-reference to the chunk it points at.

    Heuristics are tried in decreasing order of trust: a footnote whose
    number starts a chunk on the destination page, page numbers quoted in
    the link text that contradict the stored destination, the destination
    point falling inside a chunk's box, and finally the first chunk on the
    destination page.
    """

    def __init__(self, tolerance: float = 50.0):
        self.tolerance = tolerance

    def resolve(self, link: LinkRef, chunks: list[Chunk]) -> Optional[ResolvedLink]:
        """Resolve one link against the book's chunks.

        Returns:
            The resolved link, or None when the destination page has no chunks
        """
        return self._resolve(link, chunks_by_page(chunks))

    def _resolve(self, link: LinkRef, pages: dict[int, list[Chunk]]) -> Optional[ResolvedLink]:
        candidates = pages.get(link.destination_page, [])
        if not candidates:
            logger.debug("No chunks on page %d for link '%s'", link.destination_page, link.text)
            return None

        text = (link.text or "").strip()

        if _FOOTNOTE_MARKER_RE.match(text):
            marker = re.compile(rf"^{re.escape(text)}\s")
            for chunk in candidates:
                if marker.match(chunk.text):
                    return self._result(link, chunk, ResolutionMethod.FOOTNOTE_DIRECT, Confidence.HIGH)

        quoted_pages = extract_page_numbers(text)
        if quoted_pages and link.destination_page not in quoted_pages:
            logger.debug(
                "Link '%s' points to page %d but mentions pages %s",
                text,
                link.destination_page,
                quoted_pages,
            )
            for page_number in quoted_pages:
                for chunk in pages.get(page_number, []):
                    if _NUMBERED_CHUNK_RE.match(chunk.text):
                        return self._result(link, chunk, ResolutionMethod.TEXT_CORRECTED, Confidence.MEDIUM)

        if link.destination_coordinates is not None:
            chunk = self.find_by_coordinates(candidates, *link.destination_coordinates)
            if chunk is not None:
                return self._result(link, chunk, ResolutionMethod.COORDINATES, Confidence.HIGH)

        return self._result(link, candidates[0], ResolutionMethod.PAGE_FALLBACK, Confidence.VERY_LOW)

    def find_by_coordinates(self, chunks: list[Chunk], x: float, y: float) -> Optional[Chunk]:
        """Chunk whose box contains the point (within tolerance), nearest center first."""
        matches = [
            chunk
            for chunk in chunks
            if chunk.coordinates is not None and chunk.coordinates.contains(x, y, self.tolerance)
        ]
        if not matches:
            return None
        return min(matches, key=lambda chunk: chunk.coordinates.distance_to(x, y))

    def _result(
        self, link: LinkRef, chunk: Chunk, method: ResolutionMethod, confidence: Confidence
    ) -> ResolvedLink:
        return ResolvedLink(
            link=link,
            target_chunk_id=chunk.id,
            method=method,
            confidence=confidence,
            chapter_number=chunk.chapter_number,
        )

    def resolve_all(
        self, links: list[LinkRef], chunks: list[Chunk], max_workers: int = 1
    ) -> tuple[list[ResolvedLink], list[LinkRef]]:
        """Resolve links independently.

        Returns:
            Tuple of (resolved links, unresolved links), both in input order
        """
        pages = chunks_by_page(chunks)

        if max_workers > 1 and len(links) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(lambda link: self._resolve(link, pages), links))
        else:
            results = [self._resolve(link, pages) for link in links]

        resolved, unresolved = [], []
        for link, result in zip(links, results):
            if result is None:
                unresolved.append(link)
            else:
                resolved.append(result)

        logger.info("Resolved %d of %d links", len(resolved), len(links))
        return resolved, unresolved


@dataclass
class LinkValidation:
    """Structural checks for one link."""

    link: LinkRef
    flags: list[str] = field(default_factory=list)
    destination_chapter: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return DESTINATION_PAGE_NOT_FOUND not in self.flags

    def to_dict(self) -> dict:
        return {
            **self.link.to_dict(),
            "isValid": self.is_valid,
            "validationFlags": self.flags,
            "destinationChapter": self.destination_chapter,
        }


def validate_links(links: list[LinkRef], chapters: list[Chapter]) -> list[LinkValidation]:
    """Flag links whose destination has no content, empty text or self references."""
    page_titles: dict[int, str] = {}
    page_lengths: dict[int, int] = {}
    for chapter in chapters:
        for chunk in chapter.chunks:
            if chunk.page_number is None:
                continue
            page_titles.setdefault(chunk.page_number, chapter.title)
            page_lengths[chunk.page_number] = page_lengths.get(chunk.page_number, 0) + len(chunk.text)

    validations = []
    for link in links:
        validation = LinkValidation(link=link)

        if link.destination_page not in page_titles:
            validation.flags.append(DESTINATION_PAGE_NOT_FOUND)
        else:
            validation.destination_chapter = page_titles[link.destination_page]
            if page_lengths[link.destination_page] < MINIMAL_CONTENT_LENGTH:
                validation.flags.append(DESTINATION_PAGE_MINIMAL_CONTENT)

        if not (link.text or "").strip():
            validation.flags.append(EMPTY_LINK_TEXT)

        if link.page_number == link.destination_page:
            validation.flags.append(SELF_REFERENCING_LINK)

        validations.append(validation)

    invalid = sum(1 for validation in validations if not validation.is_valid)
    if invalid:
        logger.warning("%d of %d links point to pages without content", invalid, len(validations))
    return validations
