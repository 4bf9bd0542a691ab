# WORKFLOW: Error taxonomy for the regions dump loader.
# Used by: Dump source, XML reader, record accumulator, record writer, pipeline
# Errors:
# 1. IngestError - Base class for every terminal failure of a run
# 2. FatalStreamError - Byte stream unreadable (I/O, truncated/corrupt gzip, HTTP)
# 3. RecordValidationError - A finalized region record failed validation
# 4. StorageError - Destination unreachable or a row could not be persisted
#
# Recoverable markup problems are not exceptions: they are collected as ParseIssue
# values in the run's ErrorSink (see etl/xml_events.py).

from typing import Any, Dict, Optional


class IngestError(Exception):
    """Base exception for a terminal ingestion failure."""
    pass


class FatalStreamError(IngestError):
    """Raised when the compressed byte stream cannot be read to the end."""
    pass


class RecordValidationError(IngestError):
    """Raised when a finalized region record fails validation."""

    def __init__(self, message: str, fields: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.fields = dict(fields or {})


class StorageError(IngestError):
    """Raised when the destination cannot be prepared or written to."""
    pass
