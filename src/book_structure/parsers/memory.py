"""Document source backed by already-extracted primitives."""

from typing import Any, Optional

from book_structure.exceptions import DestinationError, ImageExtractionError
from book_structure.models import LinkRef, OutlineNode, PageImageCount, RawTextRun
from book_structure.parsers.base import DocumentSource


class InMemorySource(DocumentSource):
    """Source over plain Python data.

    Useful when primitives were extracted elsewhere (or cached) and for
    tests. Destinations resolve through ``destinations`` when given, and
    plain positive integers are taken as page numbers.
    """

    def __init__(
        self,
        pages: list[list[RawTextRun]],
        outline: Optional[list[OutlineNode]] = None,
        destinations: Optional[dict[Any, int]] = None,
        image_counts: Optional[list[PageImageCount]] = None,
        image_files: Optional[list] = None,
        image_error: Optional[Exception] = None,
        links: Optional[list[LinkRef]] = None,
        metadata: Optional[dict] = None,
        filename: str = "",
    ):
        self.pages = pages
        self.outline = outline or []
        self.destinations = destinations or {}
        self.image_counts = image_counts or []
        self.image_files = image_files or []
        self.image_error = image_error
        self.links = links or []
        self.metadata = metadata or {}
        self._filename = filename

    @classmethod
    def from_lines(
        cls,
        page_lines: list[list[str]],
        line_height: float = 14.0,
        top: float = 760.0,
        left: float = 72.0,
        **kwargs,
    ) -> "InMemorySource":
        """Build a source where every string is one line of its page.

        Lines are laid out top-down in PDF user space (y decreases).
        """
        pages = []
        for page_index, lines in enumerate(page_lines):
            page_number = page_index + 1
            runs = [
                RawTextRun(
                    text=line,
                    page_number=page_number,
                    x=left,
                    y=top - i * line_height,
                    width=6.0 * len(line),
                    height=line_height - 2,
                )
                for i, line in enumerate(lines)
            ]
            pages.append(runs)
        return cls(pages, **kwargs)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def filename(self) -> str:
        return self._filename

    def get_outline(self) -> list[OutlineNode]:
        return self.outline

    def resolve_destination_page(self, dest: Any) -> int:
        try:
            if dest in self.destinations:
                return self.destinations[dest]
        except TypeError:
            pass  # Unhashable destination

        if isinstance(dest, int) and not isinstance(dest, bool) and 1 <= dest <= self.page_count:
            return dest

        raise DestinationError(f"Cannot resolve destination {dest!r}")

    def get_page_text(self, page_number: int) -> list[RawTextRun]:
        if not 1 <= page_number <= len(self.pages):
            return []
        return self.pages[page_number - 1]

    def detect_images_per_page(self) -> list[PageImageCount]:
        return self.image_counts

    def extract_image_files(self) -> list:
        if self.image_error is not None:
            raise ImageExtractionError(str(self.image_error)) from self.image_error
        return self.image_files

    def get_links(self) -> list[LinkRef]:
        return self.links

    def get_metadata(self) -> dict:
        return self.metadata
