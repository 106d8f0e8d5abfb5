"""
Exceptions raised by the import engine.

Request-level errors (``ImportEngineError`` subclasses) abort the current
call. Row-level errors (``RowError`` subclasses) are caught per row and
reported as a failed row; they never stop a batch.
"""


class ImportEngineError(Exception):
    """Base class for request-level import errors."""


class NotFound(ImportEngineError):
    """A source file, import session, template or page does not exist."""


class ImportConfigError(ImportEngineError):
    """The import configuration is invalid."""


class BatchOutOfRange(ImportEngineError):
    """The requested batch index is outside the import's batches."""


class MalformedCsvError(ImportEngineError):
    """The source file cannot be parsed as CSV."""


class RowError(Exception):
    """Base class for errors that fail a single row."""


class FieldValueError(RowError):
    """A raw column value cannot be coerced to its target field."""


class AttachmentError(RowError):
    """An attachment locator cannot be fetched or stored."""
