"""
Custom exception hierarchy for the image reconciler.

Recoverable conditions (missing directories, unreadable image lists, missing
files) are logged where they occur. These types mark the failures that callers
need to tell apart.
"""


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""
    pass


class DatabaseError(ReconcilerError):
    """Raised when reading or writing property records fails."""
    pass


class FileOperationError(ReconcilerError):
    """Raised when staging a file into the serving directory fails."""
    pass


class ManifestError(ReconcilerError):
    """Raised when an image manifest cannot be loaded."""
    pass


class ImageListParseError(ReconcilerError):
    """Raised when a stored image list cannot be decoded by any strategy."""
    pass
