"""Chapter boundary detection over a flat text stream."""

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Optional

from book_structure.config import BookConfig
from book_structure.models import Chapter, ChapterCandidate, ChapterNumber, ChapterSource, PageText
from book_structure.parsers.toc import WORD_NUMBERS
from book_structure.utils import clean_page_numbers, fuzzy_match, normalize, word_count

logger = logging.getLogger(__name__)

_PAGE_NUMBER_RE = re.compile(r"^(?:\d+|page\s+\d+)$", re.IGNORECASE)
_METADATA_RE = re.compile(
    r"^(?:isbn|copyright|typeset|printed|published|all rights|first published|volume)", re.IGNORECASE
)
_PARTIAL_SENTENCE_RE = re.compile(r"[,;]|\b(?:of|the|and)$", re.IGNORECASE)
_BIBLIOGRAPHY_RE = re.compile(
    r"\(\w+,|\d{4}\)|\b(?:press|oxford|university|journal)\b", re.IGNORECASE
)

_CHAPTER_PREFIX_RE = re.compile(
    r"^chapter\s+(\d+|" + "|".join(WORD_NUMBERS) + r")\b\s*:?\s*", re.IGNORECASE
)
_NUMBERED_HEADING_RE = re.compile(r"^(\d+)\.\s+(.+)$")

MIN_HEADING_LENGTH = 3
MAX_HEADING_LENGTH = 80

# Lookahead window and threshold when scoring explicit chapter name occurrences
OCCURRENCE_WINDOW = 100
CONTENT_LINE_LENGTH = 20


@dataclass
class _Line:
    """A line of the stream with its character offsets."""

    index: int
    start: int
    end: int
    text: str  # Stripped


@dataclass
class _Boundary:
    line: _Line
    number: ChapterNumber
    title: str


class PageOffsetIndex:
    """Map character offsets of a joined text stream back to page numbers."""

    def __init__(self):
        self._offsets: list[int] = []
        self._pages: list[int] = []

    def add(self, offset: int, page_number: int) -> None:
        """Record that ``page_number`` starts at ``offset``. Offsets must ascend."""
        self._offsets.append(offset)
        self._pages.append(page_number)

    def page_at(self, offset: int) -> Optional[int]:
        position = bisect.bisect_right(self._offsets, offset) - 1
        if position < 0:
            return None
        return self._pages[position]

    def spans(self, start: int, end: int) -> list[tuple[int, int, int]]:
        """Split ``[start, end)`` into ``(page_number, start, end)`` pieces."""
        pieces = []
        position = max(bisect.bisect_right(self._offsets, start) - 1, 0)
        while position < len(self._offsets) and self._offsets[position] < end:
            piece_start = max(self._offsets[position], start)
            next_offset = self._offsets[position + 1] if position + 1 < len(self._offsets) else end
            piece_end = min(next_offset, end)
            if piece_start < piece_end:
                pieces.append((self._pages[position], piece_start, piece_end))
            position += 1
        return pieces

    @classmethod
    def build(cls, page_texts: list[tuple[int, str]], separator: str = "\n") -> tuple[str, "PageOffsetIndex"]:
        """Join page texts into one stream and index where each page begins."""
        index = cls()
        parts = []
        offset = 0
        for page_number, text in page_texts:
            index.add(offset, page_number)
            piece = text + separator
            parts.append(piece)
            offset += len(piece)
        return "".join(parts), index


def split_lines(text: str) -> list[_Line]:
    lines = []
    offset = 0
    for i, raw in enumerate(text.splitlines(keepends=True)):
        lines.append(_Line(index=i, start=offset, end=offset + len(raw), text=raw.strip()))
        offset += len(raw)
    return lines


def is_plausible_heading(line: str) -> bool:
    """Reject lines that match a heading pattern but read like something else."""
    if not MIN_HEADING_LENGTH <= len(line) <= MAX_HEADING_LENGTH:
        return False
    if _PAGE_NUMBER_RE.match(line) or _METADATA_RE.match(line):
        return False
    if _PARTIAL_SENTENCE_RE.search(line):
        return False
    if _BIBLIOGRAPHY_RE.search(line):
        return False
    return True


def parse_heading(line: str) -> tuple[Optional[int], str]:
    """Split a heading into its encoded chapter number (if any) and title."""
    match = _CHAPTER_PREFIX_RE.match(line)
    if match:
        token = match.group(1).lower()
        number = int(token) if token.isdigit() else WORD_NUMBERS[token]
        title = line[match.end():].strip()
        return number, title or f"Chapter {number}"

    match = _NUMBERED_HEADING_RE.match(line)
    if match:
        return int(match.group(1)), match.group(2).strip()

    return None, line


class ChapterDetector:
    """Partition a text stream into chapters.

    Boundaries are line starts, so the chapters' ``raw_text`` slices always
    concatenate back to the stream (minus any discarded front matter).
    """

    def __init__(self, config: Optional[BookConfig] = None):
        self.config = config or BookConfig()

    def is_boundary(self, line: str) -> bool:
        if not line:
            return False
        if not any(pattern.search(line) for pattern in self.config.chapter_regexes):
            return False
        if any(pattern.search(line) for pattern in self.config.exclude_regexes):
            return False
        return is_plausible_heading(line)

    def detect(
        self,
        text: str,
        candidates: Optional[list[ChapterCandidate]] = None,
        page_index: Optional[PageOffsetIndex] = None,
    ) -> list[Chapter]:
        """Detect chapters in a text stream.

        Args:
            text: Full text stream, one heading per line
            candidates: Table of contents entries used to confirm headings
            page_index: Offsets of page starts within ``text``

        Returns:
            Chapters in stream order, never empty for non-empty text
        """
        lines = split_lines(text)
        start_line = self._find_start_line(lines)
        content_start = start_line.start if start_line else 0
        body = [line for line in lines if line.start >= content_start]

        if self.config.chapter_names:
            boundaries = self._explicit_boundaries(body)
        else:
            boundaries = self._pattern_boundaries(body)

        # The configured start chapter always opens a chapter
        if start_line is not None and (not boundaries or boundaries[0].line.start > start_line.start):
            number, title = parse_heading(start_line.text)
            boundaries.insert(0, _Boundary(start_line, number, title))

        if not boundaries:
            logger.warning("No chapter boundaries found, using a single chapter")
            chapter = self._make_chapter(
                text, content_start, len(text), self.config.chapter_start_number, "Full Text", page_index
            )
            chapter.source = "fallback"
            return [chapter]

        self._number(boundaries)
        if candidates:
            self._confirm(boundaries, candidates)

        chapters = []
        first_start = boundaries[0].line.start
        leading = text[content_start:first_start]
        if leading:
            if self.config.skip_front_matter and not self.config.start_chapter:
                logger.debug("Discarding %d characters of front matter", len(leading))
            elif leading.strip():
                chapters.append(
                    self._make_chapter(text, content_start, first_start, None, "Front Matter", page_index)
                )
            else:
                first_start = content_start

        for i, boundary in enumerate(boundaries):
            start = first_start if i == 0 else boundary.line.start
            end = boundaries[i + 1].line.start if i + 1 < len(boundaries) else len(text)
            chapters.append(self._make_chapter(text, start, end, boundary.number, boundary.title, page_index))

        logger.info("Detected %d chapters", len(chapters))
        return chapters

    def _find_start_line(self, lines: list[_Line]) -> Optional[_Line]:
        start_chapter = self.config.start_chapter
        if not (self.config.skip_front_matter and start_chapter):
            return None

        for line in lines:
            if line.text and fuzzy_match(line.text, start_chapter):
                return line

        logger.warning("Start chapter '%s' not found, keeping all content", start_chapter)
        return None

    def _pattern_boundaries(self, lines: list[_Line]) -> list[_Boundary]:
        boundaries = []
        for line in lines:
            if self.is_boundary(line.text):
                number, title = parse_heading(line.text)
                boundaries.append(_Boundary(line, number, title))
        return boundaries

    def _explicit_boundaries(self, lines: list[_Line]) -> list[_Boundary]:
        """Pick, for each configured name, the occurrence followed by the most content."""
        names = self.config.chapter_names
        texts = [line.text for line in lines]

        def matching_name(candidate: str) -> Optional[str]:
            return next((name for name in names if fuzzy_match(candidate, name)), None)

        occurrences: dict[str, list[int]] = {}
        for i, line_text in enumerate(texts):
            if not line_text:
                continue
            name = matching_name(line_text)
            if name:
                occurrences.setdefault(name, []).append(i)
            # Titles broken over two lines
            if i + 1 < len(texts) and texts[i + 1]:
                joined_name = matching_name(f"{line_text} {texts[i + 1]}")
                if joined_name and joined_name != name:
                    occurrences.setdefault(joined_name, []).append(i)

        selected: dict[int, str] = {}
        for name in names:
            best_index, best_score = None, 0
            for index in occurrences.get(name, []):
                score = self._content_after(texts, index, matching_name)
                if score > best_score:
                    best_index, best_score = index, score
            if best_index is None:
                logger.warning("No occurrence of chapter '%s' with content after it", name)
            elif best_index not in selected:
                selected[best_index] = name

        return [_Boundary(lines[i], None, selected[i]) for i in sorted(selected)]

    def _content_after(self, texts: list[str], index: int, matching_name) -> int:
        count = 0
        for line_text in texts[index + 1 : index + OCCURRENCE_WINDOW]:
            if line_text and matching_name(line_text):
                break
            if len(line_text) > CONTENT_LINE_LENGTH and not line_text.isdigit():
                count += 1
        return count

    def _number(self, boundaries: list[_Boundary]) -> None:
        counter = self.config.chapter_start_number
        for boundary in boundaries:
            if isinstance(boundary.number, int):
                counter = boundary.number + 1
            else:
                boundary.number = counter
                counter += 1

    def _confirm(self, boundaries: list[_Boundary], candidates: list[ChapterCandidate]) -> None:
        for boundary in boundaries:
            for candidate in candidates:
                if not candidate.chapter_title:
                    continue
                if fuzzy_match(boundary.title, candidate.chapter_title) or fuzzy_match(
                    boundary.line.text, candidate.chapter_title
                ):
                    if candidate.chapter_number is not None:
                        boundary.number = candidate.chapter_number
                    boundary.title = candidate.chapter_title
                    logger.debug("Heading '%s' confirmed by table of contents", boundary.line.text)
                    break

    def _make_chapter(
        self,
        text: str,
        start: int,
        end: int,
        number: ChapterNumber,
        title: str,
        page_index: Optional[PageOffsetIndex],
    ) -> Chapter:
        raw_text = text[start:end]
        chapter = Chapter(number=number, title=title, raw_text=raw_text, word_count=word_count(raw_text))

        if page_index is not None:
            pages = []
            for page_number, piece_start, piece_end in page_index.spans(start, end):
                piece = text[piece_start:piece_end].strip()
                if piece:
                    pages.append(PageText(page_number=page_number, text=piece))
            chapter.pages = pages
            if pages:
                chapter.start_page = pages[0].page_number
                chapter.end_page = pages[-1].page_number
            else:
                chapter.start_page = chapter.end_page = page_index.page_at(start)
            if chapter.start_page is not None:
                chapter.page_numbers = list(range(chapter.start_page, chapter.end_page + 1))

        return chapter

    def from_toc(
        self,
        candidates: list[ChapterCandidate],
        page_texts: dict[int, PageText],
        page_count: int,
        source: ChapterSource = ChapterSource.BOOKMARKS,
    ) -> list[Chapter]:
        """Build chapters from table of contents page ranges.

        Args:
            candidates: Table of contents entries in discovery order
            page_texts: Text (and bounds) of each page, keyed by page number
            page_count: Number of pages in the document
            source: Signal the candidates came from

        Returns:
            Chapters with per-page text, empty when no candidate is usable
        """
        entries = self._content_candidates(candidates, page_count)
        if not entries:
            return []

        names_mode = bool(self.config.chapter_names)
        chapters = []
        for i, candidate in enumerate(entries):
            start_page = candidate.page
            end_page = entries[i + 1].page - 1 if i + 1 < len(entries) else page_count

            pages = []
            for page_number in range(start_page, end_page + 1):
                page = page_texts.get(page_number)
                if page is None:
                    continue
                cleaned = clean_page_numbers(page.text, page_number).strip()
                if cleaned:
                    pages.append(PageText(page_number=page_number, text=cleaned, bounds=page.bounds))

            if not pages:
                logger.warning("No text found for chapter '%s' (pages %d-%d)", candidate.chapter_title, start_page, end_page)
                continue

            self._check_title_on_page(candidate.chapter_title, pages[0])

            number = self.config.chapter_start_number + len(chapters) if names_mode else candidate.chapter_number
            raw_text = "\n".join(page.text for page in pages)
            chapters.append(
                Chapter(
                    number=number,
                    title=candidate.chapter_title,
                    start_page=start_page,
                    end_page=end_page,
                    raw_text=raw_text,
                    pages=pages,
                    page_numbers=list(range(start_page, end_page + 1)),
                    word_count=word_count(raw_text),
                    source=source.value,
                )
            )

        logger.info("Built %d chapters from %s", len(chapters), source.value)
        return chapters

    def _content_candidates(self, candidates: list[ChapterCandidate], page_count: int) -> list[ChapterCandidate]:
        kept: list[ChapterCandidate] = []
        seen = set()

        for candidate in candidates:
            page = candidate.page
            if page is None or page > page_count or not self._is_content_chapter(candidate):
                continue

            key = (candidate.chapter_number, page)
            if key in seen:
                continue
            seen.add(key)

            if kept and page <= kept[-1].page:
                logger.debug(
                    "Dropping '%s': starts on page %d, not after page %d",
                    candidate.chapter_title,
                    page,
                    kept[-1].page,
                )
                continue
            kept.append(candidate)

        return kept

    def _is_content_chapter(self, candidate: ChapterCandidate) -> bool:
        number = candidate.chapter_number
        if isinstance(number, int) and not isinstance(number, bool) and number >= 0:
            return True
        if isinstance(number, str) and "epilogue" in number.lower():
            return True

        title = candidate.chapter_title
        return any(name == title or name in title or title in name for name in self.config.chapter_names)

    def _check_title_on_page(self, title: str, page: PageText) -> None:
        first_lines = [line for line in page.text.splitlines() if line.strip()][:5]
        if any(fuzzy_match(line, title) for line in first_lines) or normalize(title) in normalize(page.text[:500]):
            logger.debug("Title '%s' confirmed on page %d", title, page.page_number)
        else:
            logger.debug("Title '%s' not found at the top of page %d", title, page.page_number)
