"""Progress tracking errors.

- InvalidArgumentError: malformed or out-of-range input (not retried)
- InvalidReferenceError: unknown video or playlist membership (not retried)
- StorageFailureError: the store failed or kept rejecting the write; the
  whole report can be retried by the caller since applying it twice yields
  the same record
"""


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidArgumentError(ProgressError):
    """Malformed or out-of-range input."""

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message, "invalid_argument")


class InvalidReferenceError(ProgressError):
    """Referenced video/playlist does not exist."""

    def __init__(self, message: str = "Referenced entity not found"):
        super().__init__(message, "invalid_reference")


class StorageFailureError(ProgressError):
    """Underlying persistence error."""

    def __init__(self, message: str = "Progress storage unavailable"):
        super().__init__(message, "storage_failure")
