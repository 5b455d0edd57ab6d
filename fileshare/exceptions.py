"""Error taxonomy for storage operations.

Every error carries the HTTP status it maps to; the message is the
human-readable reason returned to the client verbatim.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for failures reported to clients."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StorageError):
    """Client-correctable request problem."""

    status_code = 400


class InvalidPathError(ValidationError):
    """Raised when a file name or folder path fails validation."""


class InvalidUploadError(ValidationError):
    """Raised when an upload request is not a single-file multipart form."""


class EmptyUploadError(ValidationError):
    def __init__(self) -> None:
        super().__init__('File is empty.')


class CapacityError(StorageError):
    status_code = 400


class UploadTooLargeError(CapacityError):
    """Raised when an upload payload exceeds the configured size cap."""

    def __init__(self, name: str, limit_mb: int) -> None:
        super().__init__(f"File '{name}' exceeds the {limit_mb}MB size limit.")
        self.name = name
        self.limit_mb = limit_mb


class RequestTooLargeError(CapacityError):
    """Raised when a request body grows past the upload cap while it is received."""

    def __init__(self, limit_mb: int) -> None:
        super().__init__(f'Request body exceeds the {limit_mb}MB size limit.')
        self.limit_mb = limit_mb


class NotFoundError(StorageError):
    status_code = 404


class ConflictError(StorageError):
    status_code = 409


class FolderExistsError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A folder named '{name}' already exists.")


class FileExistsConflictError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A file named '{name}' already exists.")


class FolderNotEmptyError(StorageError):
    """Raised when deleting a non-empty folder without ``force``.

    Args:
        files_count: Number of files directly inside the folder.
        folders_count: Number of subfolders directly inside the folder.
    """

    status_code = 400

    def __init__(self, files_count: int, folders_count: int) -> None:
        super().__init__('Folder is not empty')
        self.files_count = files_count
        self.folders_count = folders_count


class TransientIOError(StorageError):
    """Unexpected filesystem fault; the client may retry the request."""

    status_code = 500
