"""Base classes for document sources."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from book_structure.models import LinkRef, OutlineNode, PageImageCount, RawTextRun


class DocumentSource(ABC):
    """Supplier of raw, page-indexed primitives for one document.

    Pages are numbered from 1. Implementations wrap a concrete document
    format; the structure pipeline only ever talks to this interface.
    """

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages in the document."""
        pass

    @abstractmethod
    def get_outline(self) -> list[OutlineNode]:
        """Top-level outline (bookmark) nodes, empty when the document has none."""
        pass

    @abstractmethod
    def resolve_destination_page(self, dest: Any) -> int:
        """Dereference an outline destination to a page number.

        Raises:
            DestinationError: If the destination cannot be resolved
        """
        pass

    @abstractmethod
    def get_page_text(self, page_number: int) -> list[RawTextRun]:
        """Text runs of a page in content order."""
        pass

    @abstractmethod
    def detect_images_per_page(self) -> list[PageImageCount]:
        """Pages that paint images, with the number painted on each."""
        pass

    @abstractmethod
    def extract_image_files(self) -> list[Path]:
        """Extract raster assets in extraction order.

        Raises:
            ImageExtractionError: If the extraction pass fails
        """
        pass

    def get_links(self) -> list[LinkRef]:
        """Internal links of the document."""
        return []

    def get_metadata(self) -> dict:
        """Document information dictionary (title, author, dates)."""
        return {}

    @property
    def filename(self) -> str:
        return ""
