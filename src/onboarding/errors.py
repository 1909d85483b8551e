"""Onboarding error taxonomy.

Every error here is recoverable: the user can retry the same operation or
restart onboarding. The session records the latest one in ``last_error``.
"""


__all__ = [
    "OnboardingError",
    "ValidationError",
    "InvalidTransitionError",
    "OperationInProgressError",
    "CollaboratorError",
    "CollaboratorTimeoutError",
    "UnauthorizedError",
]


class OnboardingError(Exception):
    """Base class for all onboarding errors.

    ``message`` is safe to show to the user.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OnboardingError):
    """A required field or selection is missing.

    Raised before any state change or collaborator call.
    """

    def __init__(self, field: str, message: str):
        """Initialize ValidationError.

        Args:
            field: Name of the missing or invalid input (e.g. "role_title").
            message: User-facing message specific to that field.
        """
        super().__init__(message)
        self.field = field


class InvalidTransitionError(OnboardingError):
    """Operation invoked outside the phase or step it belongs to."""

    def __init__(self, operation: str, phase: str):
        super().__init__(f"Cannot {operation.replace('_', ' ')} during {phase}")
        self.operation = operation
        self.phase = phase


class OperationInProgressError(OnboardingError):
    """The same operation is already awaiting a collaborator response."""

    def __init__(self, operation: str):
        super().__init__(f"{operation.replace('_', ' ').capitalize()} is already in progress")
        self.operation = operation


class CollaboratorError(OnboardingError):
    """A backend call failed (network, server or decoding).

    Retryable by re-invoking the same operation.
    """

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize CollaboratorError.

        Args:
            message: Error description.
            status_code: HTTP status returned by the backend, if any.
        """
        super().__init__(message)
        self.status_code = status_code


class CollaboratorTimeoutError(CollaboratorError):
    """A backend call did not complete within the configured timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"Request timed out after {timeout:g}s ({operation})")
        self.operation = operation
        self.timeout = timeout


class UnauthorizedError(CollaboratorError):
    """Backend rejected the access token."""

    def __init__(self, message: str = "Unauthorized access. Please login again."):
        super().__init__(message, status_code=401)
