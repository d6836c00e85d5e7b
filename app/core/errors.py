"""
Error taxonomy for the intake flow.

Validation failures never escape the step controller (they are returned as
signals), and token failures are returned as tagged results by the codec.
The exception classes below cover the cases that do cross a boundary.
"""

GENERIC_RETRY_MESSAGE = "Something went wrong. Please try again."
INVALID_LINK_MESSAGE = "This link is invalid or has expired. Please start over."


class IntakeError(Exception):
    """Request-level failure rendered by the API as {"error": message} with `status`."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = int(status)


class ValidationError(IntakeError):
    """User-correctable input problem."""

    def __init__(self, message: str):
        super().__init__(message, status=400)


class InvalidTokenError(IntakeError):
    """Token rejected by the codec. The reason stays in logs only."""

    def __init__(self, reason: str, message: str = INVALID_LINK_MESSAGE):
        super().__init__(message, status=401)
        self.reason = reason


class CollaboratorError(IntakeError):
    """Network/server failure in a collaborator (submission API, transcription, email)."""

    def __init__(self, message: str = "", status: int = 502):
        super().__init__(message or GENERIC_RETRY_MESSAGE, status=status)

    @property
    def user_message(self) -> str:
        return self.message or GENERIC_RETRY_MESSAGE


class AudioPermissionError(PermissionError):
    """Audio capture/read was denied; callers fall back to manual text entry."""
