"""Custom exceptions for Seeker"""


class SeekerError(Exception):
    """Base exception for Seeker"""

    status_code = 500


class ConfigurationError(SeekerError):
    """Configuration-related errors"""

    pass


class AccessDenied(SeekerError):
    """Path is outside every configured mount or attempts traversal"""

    status_code = 403


class NotFound(SeekerError):
    """Missing file, directory or upload session"""

    status_code = 404


class Conflict(SeekerError):
    """Name collision or an upload that is not complete yet"""

    status_code = 409


class InvalidRequest(SeekerError):
    """Bad filename, empty name or malformed arguments"""

    status_code = 400


class FileOperationError(SeekerError):
    """File operation errors"""

    status_code = 500


class TransientError(FileOperationError):
    """I/O failure or external subprocess failure/timeout"""

    status_code = 503


class RangeNotSatisfiable(InvalidRequest):
    """Requested byte range lies outside the file"""

    status_code = 416
