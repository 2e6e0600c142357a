"""Exceptions raised by the ingestion pipeline.

Only ``FileStructureError`` escapes ``ingest``. ``RecordError`` is raised
inside the orchestrator for a single failed write-plan and is absorbed into
the file's error count.
"""


class IngestError(Exception):
    """Base exception for all ingestion errors."""


class FileStructureError(IngestError):
    """Raised when a whole file cannot be ingested.

    This exception is raised when:
    - The file cannot be read
    - The XML or CSV content cannot be parsed
    - The expected root container is missing
    """


class RecordError(IngestError):
    """Raised when one record's write-plan fails and is rolled back."""

    def __init__(self, label: str, cause: BaseException) -> None:
        super().__init__(f'{label}: {cause}')
        self.label = label
        self.cause = cause
