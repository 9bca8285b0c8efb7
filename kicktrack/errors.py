"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class PermissionDeniedError(AppError):
    """Raised when the current user may not perform an operation."""

    def __init__(self, message="You are not allowed to do that."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a game, tournament, team or player is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class InvalidStateError(AppError):
    """Raised when the lifecycle state of a document forbids an operation."""

    def __init__(self, message="Operation not allowed in the current state."):
        """Initialize the error."""
        super().__init__(message, 409)


class ConcurrencyError(AppError):
    """Raised when a document changed between read and write."""

    def __init__(self, message="The document was modified by someone else."):
        """Initialize the error."""
        super().__init__(message, 409)
