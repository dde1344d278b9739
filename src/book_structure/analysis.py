"""Structure statistics and console summaries."""

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from book_structure.models import Book


@dataclass
class ChapterStatistics:
    """Statistics for a single chapter."""

    number: object
    title: str
    start_page: int
    end_page: int
    chunks: int
    words: int
    images: int
    source: str

    @property
    def pages(self) -> int:
        return self.end_page - self.start_page + 1

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "number": self.number,
            "title": self.title,
            "start_page": self.start_page,
            "end_page": self.end_page,
            "pages": self.pages,
            "chunks": self.chunks,
            "words": self.words,
            "images": self.images,
            "source": self.source,
        }


@dataclass
class StructureStatistics:
    """Statistics for a resolved book."""

    title: str
    page_count: int
    chapters: list[ChapterStatistics] = field(default_factory=list)
    images_by_tier: dict[str, int] = field(default_factory=dict)
    links_by_method: dict[str, int] = field(default_factory=dict)
    links_by_confidence: dict[str, int] = field(default_factory=dict)
    unresolved_links: int = 0

    @property
    def total_chunks(self) -> int:
        return sum(c.chunks for c in self.chapters)

    @property
    def total_words(self) -> int:
        return sum(c.words for c in self.chapters)

    @property
    def total_images(self) -> int:
        return sum(self.images_by_tier.values())

    @property
    def total_links(self) -> int:
        return sum(self.links_by_method.values()) + self.unresolved_links

    @property
    def resolution_rate(self) -> float:
        """Share of links that reached a target chunk."""
        return (self.total_links - self.unresolved_links) / self.total_links if self.total_links > 0 else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "page_count": self.page_count,
            "total_chapters": len(self.chapters),
            "total_chunks": self.total_chunks,
            "total_words": self.total_words,
            "total_images": self.total_images,
            "total_links": self.total_links,
            "resolution_rate": round(self.resolution_rate, 4),
            "chapters": [c.to_dict() for c in self.chapters],
            "images_by_tier": self.images_by_tier,
            "links_by_method": self.links_by_method,
            "links_by_confidence": self.links_by_confidence,
            "unresolved_links": self.unresolved_links,
        }


def image_tier(image) -> str:
    if image.extracted:
        return "extracted"
    if image.image_alt.endswith("Detection only"):
        return "detection_only"
    return "placeholder"


class StructureAnalyzer:
    """Compute and display statistics for a resolved book."""

    def __init__(self, book: Book):
        self.book = book
        self._stats: Optional[StructureStatistics] = None

    def compute(self) -> StructureStatistics:
        """Compute statistics (cached after the first call)."""
        if self._stats is not None:
            return self._stats

        book = self.book
        stats = StructureStatistics(title=book.metadata.title, page_count=book.metadata.page_count)

        for chapter in book.chapters:
            stats.chapters.append(
                ChapterStatistics(
                    number=chapter.number,
                    title=chapter.title,
                    start_page=chapter.start_page or 1,
                    end_page=chapter.end_page or chapter.start_page or 1,
                    chunks=len(chapter.chunks),
                    words=sum(chunk.word_count for chunk in chapter.chunks),
                    images=len(chapter.images),
                    source=chapter.source,
                )
            )

        images_by_tier = defaultdict(int)
        for image in book.images:
            images_by_tier[image_tier(image)] += 1
        stats.images_by_tier = dict(images_by_tier)

        by_method = defaultdict(int)
        by_confidence = defaultdict(int)
        for link in book.links:
            by_method[link.method.value] += 1
            by_confidence[link.confidence.value] += 1
        stats.links_by_method = dict(by_method)
        stats.links_by_confidence = dict(by_confidence)
        stats.unresolved_links = len(book.unresolved_links)

        self._stats = stats
        return stats

    def save(self, output_path: Path) -> None:
        """Save statistics to a JSON file."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.compute().to_dict(), f, indent=2, ensure_ascii=False)

    def print_summary(self, console: Optional[Console] = None) -> None:
        """Print summary tables."""
        console = console or Console()
        stats = self.compute()

        overview = Table(title=f"Structure: {stats.title}")
        overview.add_column("Metric", style="cyan")
        overview.add_column("Count", style="green", justify="right")
        overview.add_row("Pages", str(stats.page_count))
        overview.add_row("Chapters", str(len(stats.chapters)))
        overview.add_row("Chunks", str(stats.total_chunks))
        overview.add_row("Words", f"{stats.total_words:,}")
        overview.add_row("Images", str(stats.total_images))
        overview.add_row("Links", str(stats.total_links))
        overview.add_row("Resolved", f"{stats.resolution_rate:.1%}")
        console.print(overview)

        if stats.chapters:
            chapter_table = Table(title="Chapters")
            chapter_table.add_column("#", style="cyan")
            chapter_table.add_column("Title")
            chapter_table.add_column("Pages", style="yellow", justify="right")
            chapter_table.add_column("Chunks", style="green", justify="right")
            chapter_table.add_column("Words", style="green", justify="right")
            chapter_table.add_column("Images", style="magenta", justify="right")
            chapter_table.add_column("Source", style="dim")

            for chapter in stats.chapters:
                chapter_table.add_row(
                    "-" if chapter.number is None else str(chapter.number),
                    chapter.title,
                    f"{chapter.start_page}-{chapter.end_page}",
                    str(chapter.chunks),
                    f"{chapter.words:,}",
                    str(chapter.images),
                    chapter.source,
                )
            console.print("\n")
            console.print(chapter_table)

        if stats.links_by_method or stats.unresolved_links:
            link_table = Table(title="Link Resolution")
            link_table.add_column("Method", style="cyan")
            link_table.add_column("Links", style="green", justify="right")
            for method, count in sorted(stats.links_by_method.items(), key=lambda x: x[1], reverse=True):
                link_table.add_row(method, str(count))
            if stats.unresolved_links:
                link_table.add_row("[red]unresolved[/red]", str(stats.unresolved_links))
            console.print("\n")
            console.print(link_table)
