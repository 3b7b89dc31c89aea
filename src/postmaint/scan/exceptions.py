"""Custom exceptions for the batch-scan engine.

Engine-internal failures are converted to scan state and notifications;
only validation errors propagate to callers of ScanController.start().
"""


class ScanError(Exception):
    """Base exception for scan engine errors."""


class ScanValidationError(ScanError, ValueError):
    """Raised when a start request has invalid parameters.

    Attributes:
        field: Name of the offending parameter.
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize the exception.

        Args:
            field: Name of the offending parameter.
            message: Human-readable description of the problem.
        """
        self.field = field
        super().__init__(message)
