"""Exception types for book structure resolution."""


class BookStructureError(Exception):
    """Base class for all book structure errors."""


class ConfigurationError(BookStructureError):
    """Book configuration could not be loaded or is invalid."""


class SourceError(BookStructureError):
    """The document source failed in a way the pipeline cannot recover from."""


class DestinationError(BookStructureError):
    """An outline or link destination could not be dereferenced to a page."""


class ImageExtractionError(BookStructureError):
    """Raster asset extraction failed (tool error or I/O failure)."""
