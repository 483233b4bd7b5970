"""Errors raised by the storage and PDF service layers.

Routers catch these and translate them to HTTP 400 responses.
"""


class PdfServiceError(Exception):
    """Base class for failures surfaced to API callers."""


class ValidationError(PdfServiceError):
    """Bad or missing input."""


class NameRequired(ValidationError):
    """File name was empty."""


class InvalidRequest(ValidationError):
    """File name or position is invalid."""


class UploadValidationError(ValidationError):
    """One or more upload checks failed.

    ``errors`` maps a field key (``FileSizeTooBig``, ``InvalidFileType``,
    ``NoFile``) to its list of messages.
    """

    def __init__(self, errors: dict[str, list[str]]):
        super().__init__("; ".join(m for msgs in errors.values() for m in msgs))
        self.errors = errors


class NotFoundError(PdfServiceError):
    """Logical name unresolvable or backend object absent."""


class InsufficientFilesError(PdfServiceError):
    """Fewer than two files exist, so there is nothing to reorder."""


class DeleteFailedError(PdfServiceError):
    """Backend reported that nothing was deleted."""


class StorageError(Exception):
    """Any failure from the blob backend."""

    def __init__(self, operation: str, key: str | None, cause: Exception | None = None):
        msg = f"{operation} failed"
        if key:
            msg += f" for {key}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        self.operation = operation
        self.key = key


class BlobNotFound(StorageError):
    """Requested key does not exist in the bucket."""
