"""Table of contents extraction from outlines or contents pages."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from book_structure.exceptions import DestinationError
from book_structure.models import ChapterCandidate, ChapterSource, OutlineNode, TocResult
from book_structure.parsers.base import DocumentSource
from book_structure.utils import group_runs_into_lines, normalize

logger = logging.getLogger(__name__)

WORD_NUMBERS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14, "fifteen": 15,
    "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
}

TOC_SEARCH_TERMS = ("contents", "table of contents", "index")

BACK_MATTER_SECTIONS = ("acknowledgments", "bibliography", "notes", "index")

_NUMBERED_TITLE_RE = re.compile(r"^(\d+)\.?\s+(.+)$")
_WORD_NUMBERED_TITLE_RE = re.compile(
    r"^Chapter\s+(" + "|".join(WORD_NUMBERS) + r"):\s*(.+)$", re.IGNORECASE
)
_APPENDIX_RE = re.compile(r"^Appendix\s+([A-Z0-9]+)", re.IGNORECASE)

_TOC_STOPLIST = (
    re.compile(r"^contents?$", re.IGNORECASE),
    re.compile(r"^table of contents$", re.IGNORECASE),
    re.compile(r"^page$", re.IGNORECASE),
    re.compile(r"^chapter$", re.IGNORECASE),
)

# Contents-page line shapes, tried in order
_NUMBERED_LINE_RE = re.compile(r"^(\d+)\.?\s+(.+?)\s+(\d+)$")
_INTRODUCTION_LINE_RE = re.compile(r"^(Introduction[:\s]*.*?)\s+([ivx]+|\d+)$", re.IGNORECASE)
_APPENDIX_LINE_RE = re.compile(r"^(Appendix\s+[A-Z][:\s]*.*?)\s+(\d+)$", re.IGNORECASE)
_GENERIC_LINE_RE = re.compile(r"^([A-Za-z\s]+)\s+(\d+)$")


def parse_bookmark_title(title: str) -> ChapterCandidate:
    """Classify an outline entry title into a chapter candidate.

    Numbered titles (``"3. Title"``, ``"3 Title"``) and ``"Chapter Three: ..."``
    carry their number, introductions are chapter 0, appendices are
    numbered ``"Appendix X"`` and epilogues ``"Epilogue"``. Everything else
    (back matter included) is kept with no chapter number.
    """
    title = title.strip()
    lowered = title.lower()

    match = _NUMBERED_TITLE_RE.match(title)
    if match:
        return ChapterCandidate(
            chapter_number=int(match.group(1)),
            chapter_title=match.group(2).strip(),
            original_title=title,
        )

    match = _WORD_NUMBERED_TITLE_RE.match(title)
    if match:
        return ChapterCandidate(
            chapter_number=WORD_NUMBERS[match.group(1).lower()],
            chapter_title=title,
            original_title=title,
        )

    if "introduction" in lowered:
        return ChapterCandidate(chapter_number=0, chapter_title=title, original_title=title)

    match = _APPENDIX_RE.match(title)
    if match:
        return ChapterCandidate(
            chapter_number=f"Appendix {match.group(1)}",
            chapter_title=title,
            original_title=title,
        )

    if "epilogue" in lowered:
        return ChapterCandidate(chapter_number="Epilogue", chapter_title=title, original_title=title)

    return ChapterCandidate(chapter_number=None, chapter_title=title, original_title=title)


def parse_toc_line(text: str) -> Optional[ChapterCandidate]:
    """Parse one contents-page line, or None when it is not an entry."""
    text = text.strip()
    if not text or any(pattern.match(text) for pattern in _TOC_STOPLIST):
        return None

    match = _NUMBERED_LINE_RE.match(text)
    if match:
        return ChapterCandidate(
            chapter_number=int(match.group(1)),
            chapter_title=match.group(2).strip(),
            starting_page=int(match.group(3)),
            original_title=text,
        )

    for pattern in (_INTRODUCTION_LINE_RE, _APPENDIX_LINE_RE, _GENERIC_LINE_RE):
        match = pattern.match(text)
        if not match:
            continue

        title = match.group(1).strip()
        page_token = match.group(2)
        lowered = title.lower()

        chapter_number = None
        if "introduction" in lowered:
            chapter_number = 0
        elif "appendix" in lowered:
            appendix = re.search(r"appendix\s+([A-Z])", title, re.IGNORECASE)
            if appendix:
                chapter_number = f"Appendix {appendix.group(1)}"

        return ChapterCandidate(
            chapter_number=chapter_number,
            chapter_title=title,
            # Roman front-matter pages stay as strings
            starting_page=int(page_token) if page_token.isdigit() else page_token,
            original_title=text,
        )

    return None


class TOCStrategy(ABC):
    """One way of discovering chapter candidates in a document."""

    source: ChapterSource

    def __init__(self, document: DocumentSource):
        self.document = document

    @abstractmethod
    def extract(self) -> list[ChapterCandidate]:
        """Return candidates in document order of discovery."""
        pass


class BookmarkStrategy(TOCStrategy):
    """Read chapter candidates from the document outline."""

    source = ChapterSource.BOOKMARKS

    def extract(self) -> list[ChapterCandidate]:
        return self._walk(self.document.get_outline())

    def _walk(self, nodes: list[OutlineNode]) -> list[ChapterCandidate]:
        candidates = []

        for node in nodes:
            if normalize(node.title).lower() == "contents":
                continue

            candidate = parse_bookmark_title(node.title)
            if node.dest is not None:
                try:
                    candidate.starting_page = self.document.resolve_destination_page(node.dest)
                except DestinationError as e:
                    logger.warning("Could not resolve destination for '%s': %s", node.title, e)
            candidates.append(candidate)

            if node.items:
                candidates.extend(self._walk(node.items))

        return candidates


class TextSearchStrategy(TOCStrategy):
    """Find contents pages among the first pages and parse their lines."""

    source = ChapterSource.TEXT_SEARCH

    def __init__(self, document: DocumentSource, max_pages: int = 20, line_tolerance: float = 5.0):
        super().__init__(document)
        self.max_pages = max_pages
        self.line_tolerance = line_tolerance

    def find_toc_pages(self) -> list[int]:
        pages = []
        for page_number in range(1, min(self.max_pages, self.document.page_count) + 1):
            runs = self.document.get_page_text(page_number)
            page_text = " ".join(run.text for run in runs).lower()
            if any(term in page_text for term in TOC_SEARCH_TERMS):
                pages.append(page_number)
        return pages

    def extract(self) -> list[ChapterCandidate]:
        candidates = []
        for page_number in self.find_toc_pages():
            runs = self.document.get_page_text(page_number)
            for line in group_runs_into_lines(runs, self.line_tolerance):
                candidate = parse_toc_line(line.text)
                if candidate:
                    candidates.append(candidate)

        logger.debug("Parsed %d contents-page entries", len(candidates))
        return candidates


class TOCExtractor:
    """Extract chapter candidates, preferring the outline over contents pages."""

    def __init__(self, document: DocumentSource, max_pages: int = 20, line_tolerance: float = 5.0):
        self.document = document
        self.max_pages = max_pages
        self.line_tolerance = line_tolerance

    def strategies(self) -> list[TOCStrategy]:
        return [
            BookmarkStrategy(self.document),
            TextSearchStrategy(self.document, self.max_pages, self.line_tolerance),
        ]

    def extract(self) -> Optional[TocResult]:
        """Run strategies in order.

        Text search only runs when the document has no outline at all; an
        outline yielding no usable entries does not trigger it.

        Returns:
            TocResult, or None when no strategy produced candidates
        """
        bookmarks, text_search = self.strategies()

        if self.document.get_outline():
            candidates = bookmarks.extract()
            logger.info("Found %d chapter candidates in outline", len(candidates))
            return TocResult(source=bookmarks.source, candidates=candidates) if candidates else None

        logger.info("No outline found, searching first %d pages for a contents page", self.max_pages)
        candidates = text_search.extract()
        if not candidates:
            logger.info("No table of contents found")
            return None

        return TocResult(source=text_search.source, candidates=candidates)
