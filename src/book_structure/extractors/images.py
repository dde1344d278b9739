"""Correlate detected images per page with extracted raster assets."""

import logging
from typing import Any, Callable

from book_structure.exceptions import ImageExtractionError
from book_structure.models import ImageRef, PageImageCount

logger = logging.getLogger(__name__)

NOT_EXTRACTED_SUFFIX = " - Not extracted"
DETECTION_ONLY_SUFFIX = " - Detection only"


def image_name(page_number: int, ordinal: int) -> str:
    return f"page-{page_number:03d}-image-{ordinal}"


def placeholder_name(page_number: int, ordinal: int) -> str:
    return f"page-{page_number}-image-{ordinal}.placeholder"


def image_alt(global_ordinal: int, page_number: int, suffix: str = "") -> str:
    return f"Figure {global_ordinal} (Page {page_number}){suffix}"


class ImageCorrelator:
    """Assign extracted image files to the pages they were detected on.

    Three tiers, from most to least trusted:

    1. exact: the number of extracted files equals the number of detected
       images, so files are consumed page by page in extraction order;
    2. proportional: counts differ, files are consumed the same way until
       they run out and the remaining slots become placeholders;
    3. detection only: extraction failed, every detected slot becomes a
       placeholder.

    Alt texts (``Figure k (Page p)``) number images across the whole book in
    every tier, so references to figure ``k`` stay stable.
    """

    def correlate(
        self,
        page_counts: list[PageImageCount],
        extract_files: Callable[[], list[Any]],
    ) -> list[ImageRef]:
        """Build page-tagged image records.

        Args:
            page_counts: Images detected per page
            extract_files: Extraction pass returning assets in extraction order

        Returns:
            Image records in page order
        """
        pages = merge_page_counts(page_counts)
        if not pages:
            return []

        try:
            files = list(extract_files())
        except (ImageExtractionError, OSError) as e:
            logger.warning("Image extraction failed, keeping detected images only: %s", e)
            return self.detection_only(pages)

        expected = sum(pc.image_count for pc in pages)
        if len(files) != expected:
            logger.warning(
                "Extracted %d images but detected %d, correlating proportionally", len(files), expected
            )
        return self.consume(pages, files)

    def consume(self, pages: list[PageImageCount], files: list[Any]) -> list[ImageRef]:
        """Walk pages in order, taking files until they run out."""
        images = []
        remaining = iter(files)
        global_ordinal = 0

        for page in pages:
            for ordinal in range(1, page.image_count + 1):
                global_ordinal += 1
                asset = next(remaining, None)
                if asset is not None:
                    images.append(
                        ImageRef(
                            page_number=page.page_number,
                            image_name=image_name(page.page_number, ordinal),
                            image_alt=image_alt(global_ordinal, page.page_number),
                            extracted=True,
                            source=asset,
                        )
                    )
                else:
                    images.append(
                        ImageRef(
                            page_number=page.page_number,
                            image_name=placeholder_name(page.page_number, ordinal),
                            image_alt=image_alt(global_ordinal, page.page_number, NOT_EXTRACTED_SUFFIX),
                            placeholder=True,
                        )
                    )

        unused = len(files) - sum(1 for image in images if image.extracted)
        if unused > 0:
            logger.debug("%d extracted images were not assigned to a page", unused)
        return images

    def detection_only(self, pages: list[PageImageCount]) -> list[ImageRef]:
        images = []
        global_ordinal = 0
        for page in pages:
            for ordinal in range(1, page.image_count + 1):
                global_ordinal += 1
                images.append(
                    ImageRef(
                        page_number=page.page_number,
                        image_name=placeholder_name(page.page_number, ordinal),
                        image_alt=image_alt(global_ordinal, page.page_number, DETECTION_ONLY_SUFFIX),
                        placeholder=True,
                    )
                )
        return images


def merge_page_counts(page_counts: list[PageImageCount]) -> list[PageImageCount]:
    """One entry per page with images, counts summed, in page order."""
    totals: dict[int, int] = {}
    for pc in page_counts:
        if pc.image_count > 0:
            totals[pc.page_number] = totals.get(pc.page_number, 0) + pc.image_count
    return [PageImageCount(page_number=page, image_count=count) for page, count in sorted(totals.items())]


def images_by_page(images: list[ImageRef]) -> dict[int, list[ImageRef]]:
    grouped: dict[int, list[ImageRef]] = {}
    for image in images:
        grouped.setdefault(image.page_number, []).append(image)
    return grouped
