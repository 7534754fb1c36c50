"""
Custom exception hierarchy for the duplicate detector.

Input glitches (an out-of-range threshold) are corrected rather than raised,
and a failing heuristic only zeroes the pair it was scoring. The types here
cover what does reach the caller.
"""


class PhotoDedupeError(Exception):
    """Base exception for all duplicate detector errors."""
    pass


class InvalidPhotoRecordError(PhotoDedupeError, ValueError):
    """Raised when a photo record cannot be built or a run gets conflicting records."""
    pass


class DetectionInProgressError(PhotoDedupeError):
    """Raised when detect() is called while the same engine is already running."""

    def __init__(self, message: str = "detection already in progress"):
        super().__init__(message)


class ScoringError(PhotoDedupeError):
    """Raised when a heuristic fails while comparing two photos."""

    def __init__(self, photo_a_id: str, photo_b_id: str, cause: BaseException):
        self.photo_a_id = photo_a_id
        self.photo_b_id = photo_b_id
        self.cause = cause
        super().__init__(f"Scoring {photo_a_id} vs {photo_b_id} failed: {cause!r}")


class FileHashError(PhotoDedupeError):
    """Raised when file hashing fails."""
    pass


class ScanError(PhotoDedupeError):
    """Raised when a source directory cannot be scanned."""
    pass
