"""Configuration schemas and loaders."""

from .schema import DEFAULT_CHAPTER_PATTERNS, DEFAULT_EXCLUDE_PATTERNS, BookConfig

__all__ = [
    "BookConfig",
    "DEFAULT_CHAPTER_PATTERNS",
    "DEFAULT_EXCLUDE_PATTERNS",
]
