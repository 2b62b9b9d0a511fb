from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .copying import CopyOperation


# ---------------------------
# Protocol-level errors
# ---------------------------
class BlobStorageError(Exception):
    """Base class for errors raised while talking to the blob service."""

    pass


class BlobNotFoundError(BlobStorageError):
    """Raised when a requested blob does not exist."""

    pass


class ResponseError(BlobStorageError):
    """Raised for any non-404 error status returned by the service."""

    def __init__(self, status_code: int, error_code: str | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class TransportError(BlobStorageError):
    """Raised when a request never produced a response."""

    pass


class ListingParseError(BlobStorageError):
    """Raised when a container listing body is not valid XML."""

    pass


class CopyFailedError(BlobStorageError):
    """Raised when a server-side copy ends in a non-success terminal state."""

    def __init__(self, operation: "CopyOperation", message: str):
        super().__init__(message)
        self.operation = operation


# ---------------------------
# Filesystem-level errors
# ---------------------------
class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    IS_DIRECTORY = "is_directory"
    TRANSPORT = "transport"
    FAILED = "failed"
    ABORTED = "aborted"
    TIMED_OUT = "timed-out"
    UNEXPECTED_STATUS = "unexpected_status"


class FilesystemError(Exception):
    """
    Raised by filesystem adapters.
    Carries the failing location, a failure kind and the underlying cause.
    """

    operation = "access"

    def __init__(
        self,
        location: str,
        reason: str = "",
        kind: ErrorKind = ErrorKind.TRANSPORT,
    ) -> None:
        self.location = location
        self.reason = reason
        self.kind = kind
        message = f"Unable to {self.operation} at location: {location}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class UnableToCheckExistence(FilesystemError):
    operation = "check existence"


class UnableToReadFile(FilesystemError):
    operation = "read file"


class UnableToWriteFile(FilesystemError):
    operation = "write file"


class UnableToDeleteFile(FilesystemError):
    operation = "delete file"


class UnableToCreateDirectory(FilesystemError):
    operation = "create directory"


class UnableToDeleteDirectory(FilesystemError):
    operation = "delete directory"


class UnableToListContents(FilesystemError):
    operation = "list contents"


class UnableToRetrieveMetadata(FilesystemError):
    operation = "retrieve metadata"

    def __init__(
        self,
        location: str,
        metadata_type: str,
        reason: str = "",
        kind: ErrorKind = ErrorKind.TRANSPORT,
    ) -> None:
        self.metadata_type = metadata_type
        super().__init__(location, reason, kind)


class UnsupportedCapability(FilesystemError):
    operation = "use capability"


class _TwoLocationError(FilesystemError):
    def __init__(
        self,
        source: str,
        destination: str,
        reason: str = "",
        kind: ErrorKind = ErrorKind.TRANSPORT,
    ) -> None:
        self.source = source
        self.destination = destination
        self.location = source
        self.reason = reason
        self.kind = kind
        message = f"Unable to {self.operation} from {source} to {destination}."
        if reason:
            message = f"{message} {reason}"
        Exception.__init__(self, message)


class UnableToCopyFile(_TwoLocationError):
    operation = "copy file"


class UnableToMoveFile(_TwoLocationError):
    operation = "move file"


class PathTraversalDetected(FilesystemError):
    operation = "resolve path"


class CorruptedPathDetected(FilesystemError):
    operation = "resolve path"
