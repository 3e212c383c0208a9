"""Exceptions raised by the pipeline."""


class ScraperError(Exception):
    """Base class for pipeline errors."""


class ExtractionError(ScraperError):
    """A page yielded no property record."""


class PersistenceError(ScraperError):
    """A record could not be written to the configured sink."""


class MessageFormatError(ScraperError):
    """A queue message body could not be decoded."""
