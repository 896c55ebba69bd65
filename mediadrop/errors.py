"""
Error taxonomy for MediaDrop.

Request errors abort a whole submission before any file is touched and are
rendered by the Flask error handlers. File errors are collected into the
per-file results of a submission and never abort sibling files.
"""

from typing import Optional


class MediaDropError(Exception):
    """Base exception for MediaDrop operations."""
    pass


# Request-fatal errors

class RequestError(MediaDropError):
    """Error that short-circuits a request before any file is processed."""
    status_code = 400
    error_code = "BAD_REQUEST"


class AlbumNotFound(RequestError):
    """Raised when no album matches the capability token."""
    status_code = 404
    error_code = "ALBUM_NOT_FOUND"


class AlbumInactive(RequestError):
    """Raised when the album exists but has been deactivated."""
    status_code = 404
    error_code = "ALBUM_INACTIVE"


class Unauthorized(RequestError):
    """Raised when a bearer token is present but invalid or expired."""
    status_code = 401
    error_code = "UNAUTHORIZED"


class Forbidden(RequestError):
    """Raised when the caller lacks the permission for an operation."""
    status_code = 403
    error_code = "FORBIDDEN"


class ContributorRequired(RequestError):
    """Raised when an anonymous caller did not give a contributor name."""
    status_code = 400
    error_code = "CONTRIBUTOR_REQUIRED"


class NoFilesProvided(RequestError):
    """Raised when an upload request carries no file parts."""
    status_code = 400
    error_code = "NO_FILES"


class InvalidRequest(RequestError):
    """Raised when a required form field is missing or malformed."""
    status_code = 400
    error_code = "INVALID_REQUEST"


# Per-file errors

class FileError(MediaDropError):
    """Error confined to a single file of a submission."""
    error_code = "FILE_ERROR"
    retryable = True

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class InvalidUpload(FileError):
    """File failed size, extension or filename validation."""
    error_code = "INVALID_UPLOAD"
    retryable = False


class UnsupportedContentType(FileError):
    """No media type could be resolved for the file's content type."""
    error_code = "UNSUPPORTED_CONTENT_TYPE"
    retryable = False

    def __init__(self, content_type: str, filename: Optional[str] = None):
        super().__init__(f"Unsupported file type: {content_type}", filename)
        self.content_type = content_type


class DuplicateContent(FileError):
    """
    Skip outcome: a file with the same name and size already exists.

    Not a failure. Reported to the caller as ``is_duplicate: true``.
    """
    error_code = "DUPLICATE"
    retryable = False

    def __init__(self, existing_path: str, filename: Optional[str] = None):
        super().__init__("This file already exists", filename)
        self.existing_path = existing_path


class WriteError(FileError):
    """I/O fault while storing the file."""
    error_code = "WRITE_ERROR"


class UploadTimeout(WriteError):
    """Storing the file exceeded the per-file deadline."""
    error_code = "TIMEOUT"


class ProvisionError(FileError):
    """The category node for the file could not be resolved."""
    error_code = "PROVISION_ERROR"


class TrackingError(FileError):
    """The ownership record could not be written after a successful store."""
    error_code = "TRACKING_ERROR"


# Internal

class ProvisionConflict(MediaDropError):
    """
    Concurrent creation of the same category node.

    Retried by the provisioner and never surfaced to callers unless the
    retry budget is exhausted.
    """

    def __init__(self, tree_id: str, label: str, parent_id: Optional[int]):
        super().__init__(
            f"Conflict creating node '{label}' under parent {parent_id} in tree {tree_id}"
        )
        self.tree_id = tree_id
        self.label = label
        self.parent_id = parent_id
