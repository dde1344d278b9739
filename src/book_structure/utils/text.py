"""Text normalization and line-building helpers."""

import re
from dataclasses import dataclass, field
from typing import Optional

from book_structure.models import BoundingBox, RawTextRun

_QUOTE_TRANSLATION = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "″": '"',
        "‶": '"',
        "‘": "'",
        "’": "'",
        "′": "'",
        "‵": "'",
    }
)

# One or more trailing page tokens: decimal or a small lowercase roman numeral
_TRAILING_PAGE_RE = re.compile(r"(?:\s+(?:\d+|(?=[ivx])x{0,3}(?:ix|iv|v?i{0,3})))+\s*$")
_WHITESPACE_RE = re.compile(r"\s+")

_ROMAN_FRONT_MATTER = [
    "i", "ii", "iii", "iv", "v", "vi", "vii", "viii",
    "ix", "x", "xi", "xii", "xiii", "xiv", "xv",
]

_CONTENT_START_RE = re.compile(r"^(?:[A-Z]|(?i:the|and|or|but|in|on|at|to|for|of|with|by)\b)")

COMMON_ABBREVIATIONS = (
    "ph.d", "m.d", "b.a", "m.a", "b.s", "m.s", "u.s", "u.k",
    "dr", "mr", "mrs", "ms", "prof", "vs", "etc", "i.e", "e.g",
    "inc", "co", "corp", "ltd", "st", "ave", "blvd",
)


def normalize(text: str) -> str:
    """Canonicalize a string for comparison.

    Removes escape backslashes, collapses whitespace runs, maps curly quotes
    and prime marks to straight ones, and strips trailing page-number tokens.
    ``normalize(normalize(s)) == normalize(s)`` holds for every input.
    """
    if not text:
        return ""
    text = text.replace("\\", "")
    text = _WHITESPACE_RE.sub(" ", text)
    text = text.translate(_QUOTE_TRANSLATION)
    text = _TRAILING_PAGE_RE.sub("", text)
    return text.strip()


def fuzzy_match(line: str, title: str) -> bool:
    """Check whether a text line is a (possibly damaged) rendering of a title.

    Accepts an exact match, a line starting with the title, a line containing
    a long title, and, for titles over 10 characters, a line matching the
    title with its first 1-3 characters dropped (lost drop-cap or ligature).
    """
    normalized_line = normalize(line)
    normalized_title = normalize(title)
    if not normalized_line or not normalized_title:
        return False

    if normalized_line == normalized_title:
        return True

    if normalized_line.startswith(normalized_title):
        return True

    if len(normalized_title) > 10:
        if normalized_title in normalized_line:
            return True

        for skip in range(1, 4):
            partial = normalized_title[skip:]
            if len(partial) > 8 and normalized_line.startswith(partial):
                return True

    return False


def word_count(text: Optional[str]) -> int:
    """Count whitespace-delimited tokens."""
    if not text:
        return 0
    return len(text.split())


@dataclass
class TextLine:
    """Runs sharing a baseline, joined into one line of text."""

    text: str
    y: float
    page_number: int
    runs: list[RawTextRun] = field(default_factory=list)

    @property
    def bounds(self) -> Optional[BoundingBox]:
        return BoundingBox.from_runs(self.runs)


def group_runs_into_lines(runs: list[RawTextRun], tolerance: float = 5.0) -> list[TextLine]:
    """Group runs into lines by clustering rounded y-coordinates.

    A run starts a new line when its y differs from the current line's y by
    more than ``tolerance``. Run order is preserved; blank lines are dropped.
    """
    lines: list[TextLine] = []
    current: list[RawTextRun] = []
    current_y: Optional[float] = None

    def flush():
        text = _WHITESPACE_RE.sub(" ", " ".join(run.text for run in current)).strip()
        if text:
            lines.append(TextLine(text=text, y=current_y, page_number=current[0].page_number, runs=list(current)))

    for run in runs:
        y = round(run.y)
        if current_y is None or abs(y - current_y) > tolerance:
            if current:
                flush()
            current = []
            current_y = y
        current.append(run)

    if current:
        flush()

    return lines


def clean_page_numbers(text: str, page_number: Optional[int] = None) -> str:
    """Remove a printed page number from the start of a page's text.

    Books typically print page ``n - 1`` on physical page ``n``; front matter
    pages (first 20) may instead open with a roman numeral.
    """
    if not page_number:
        return text

    book_page = page_number - 1
    if book_page >= 1:
        text = re.sub(rf"^\s*{book_page}\s+", "", text, count=1)

    if page_number <= 20:
        for roman in _ROMAN_FRONT_MATTER:
            match = re.match(rf"^\s*{roman}\s+", text)
            if match and _CONTENT_START_RE.match(text[match.end() :]):
                return text[match.end() :]

    return text


def _ends_with_abbreviation(sentence: str) -> bool:
    last_word = sentence.split()[-1].lower().rstrip(".") if sentence.strip() else ""
    return last_word in COMMON_ABBREVIATIONS


def split_sentences(text: str) -> list[str]:
    """Split text into sentences on terminal punctuation.

    A period after a known abbreviation does not end the sentence when the
    next word starts in lowercase.
    """
    words = text.split()
    sentences: list[str] = []
    current: list[str] = []

    for i, word in enumerate(words):
        current.append(word)
        if not re.search(r"[.!?]+$", word):
            continue

        next_word = words[i + 1] if i + 1 < len(words) else ""
        if _ends_with_abbreviation(" ".join(current)) and next_word[:1].islower():
            continue

        sentences.append(" ".join(current))
        current = []

    if current:
        sentences.append(" ".join(current))

    return sentences
