"""PDF document source using PyMuPDF."""

import logging
from pathlib import Path
from typing import Any, Optional

import fitz  # PyMuPDF

from book_structure.exceptions import DestinationError, ImageExtractionError, SourceError
from book_structure.models import LinkRef, OutlineNode, PageImageCount, RawTextRun
from book_structure.parsers.base import DocumentSource

logger = logging.getLogger(__name__)

_GOTO_KINDS = (fitz.LINK_GOTO, fitz.LINK_NAMED)


class PDFSource(DocumentSource):
    """Read text runs, outline, images and internal links from a PDF.

    Coordinates are reported in PDF user space (origin bottom-left, y grows
    upwards), so they compare directly with link destination coordinates.
    """

    def __init__(self, path: Path, images_output_dir: Optional[Path] = None):
        """Open a PDF.

        Args:
            path: Path to the PDF file
            images_output_dir: Directory extracted raster assets are written to
        """
        self.path = Path(path)
        self.images_output_dir = Path(images_output_dir) if images_output_dir else None
        try:
            self.doc = fitz.open(str(self.path))
        except (OSError, RuntimeError, ValueError) as e:
            raise SourceError(f"Cannot open PDF {self.path}: {e}") from e

    def close(self) -> None:
        self.doc.close()

    def __enter__(self) -> "PDFSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def page_count(self) -> int:
        return len(self.doc)

    @property
    def filename(self) -> str:
        return self.path.name

    def get_metadata(self) -> dict:
        metadata = self.doc.metadata or {}
        return {
            "title": metadata.get("title") or None,
            "author": metadata.get("author") or None,
            "creation_date": metadata.get("creationDate") or None,
            "modification_date": metadata.get("modDate") or None,
        }

    def get_outline(self) -> list[OutlineNode]:
        """Rebuild the outline tree from PyMuPDF's flat, level-annotated TOC."""
        roots: list[OutlineNode] = []
        stack: list[tuple[int, OutlineNode]] = []

        for entry in self.doc.get_toc(simple=False):
            level, title, page = entry[0], entry[1], entry[2]
            node = OutlineNode(title=title, dest=page)

            while stack and stack[-1][0] >= level:
                stack.pop()
            if stack:
                stack[-1][1].items.append(node)
            else:
                roots.append(node)
            stack.append((level, node))

        return roots

    def resolve_destination_page(self, dest: Any) -> int:
        if isinstance(dest, int) and 1 <= dest <= self.page_count:
            return dest
        raise DestinationError(f"Outline destination {dest!r} does not point to a page")

    def get_page_text(self, page_number: int) -> list[RawTextRun]:
        page = self.doc.load_page(page_number - 1)
        page_height = page.rect.height
        runs = []

        for block in page.get_text("dict").get("blocks", []):
            if block.get("type") != 0:  # Text blocks only
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    x0, y0, x1, y1 = span.get("bbox", (0, 0, 0, 0))
                    origin_x, origin_y = span.get("origin", (x0, y1))
                    runs.append(
                        RawTextRun(
                            text=text,
                            page_number=page_number,
                            x=origin_x,
                            y=page_height - origin_y,
                            font_id=span.get("font", ""),
                            width=x1 - x0,
                            height=y1 - y0,
                        )
                    )

        return runs

    def detect_images_per_page(self) -> list[PageImageCount]:
        counts = []
        for page_index in range(len(self.doc)):
            page = self.doc.load_page(page_index)
            image_count = len(page.get_images(full=True))
            if image_count > 0:
                counts.append(PageImageCount(page_number=page_index + 1, image_count=image_count))
        return counts

    def extract_image_files(self) -> list[Path]:
        """Write every page image to ``images_output_dir`` in page order."""
        if self.images_output_dir is None:
            raise ImageExtractionError("No output directory configured for image extraction")

        try:
            self.images_output_dir.mkdir(parents=True, exist_ok=True)
            extracted = []
            for page_index in range(len(self.doc)):
                page = self.doc.load_page(page_index)
                for img in page.get_images(full=True):
                    xref = img[0]
                    base_image = self.doc.extract_image(xref)
                    if not base_image:
                        continue
                    output_path = self.images_output_dir / (
                        f"image-{len(extracted):04d}.{base_image['ext']}"
                    )
                    with open(output_path, "wb") as img_file:
                        img_file.write(base_image["image"])
                    extracted.append(output_path)
        except (OSError, RuntimeError, ValueError) as e:
            raise ImageExtractionError(f"Failed to extract images from {self.path}: {e}") from e

        return extracted

    def get_links(self) -> list[LinkRef]:
        links = []
        for page_index in range(len(self.doc)):
            page = self.doc.load_page(page_index)
            for link in page.get_links():
                if link.get("kind") not in _GOTO_KINDS or link.get("page", -1) < 0:
                    continue

                destination_page = link["page"] + 1
                links.append(
                    LinkRef(
                        text=self._link_text(page, link.get("from")),
                        page_number=page_index + 1,
                        destination_page=destination_page,
                        destination_coordinates=self._destination_point(link, destination_page),
                    )
                )
        return links

    def _link_text(self, page: fitz.Page, rect: Optional[fitz.Rect]) -> str:
        """Text under a link rectangle, ``"Link"`` when there is none."""
        if rect is None:
            return "Link"
        text = " ".join(page.get_textbox(rect).split())
        return text or "Link"

    def _destination_point(self, link: dict, destination_page: int) -> Optional[tuple[float, float]]:
        point = link.get("to")
        if point is None or (point.x == 0 and point.y == 0):
            return None
        if destination_page > self.page_count:
            return None
        height = self.doc.load_page(destination_page - 1).rect.height
        return (point.x, height - point.y)
