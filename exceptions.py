"""Domain errors raised by the ride-sharing engines.

Each error carries the HTTP status the API layer reports it with.
"""


class RideShareError(Exception):
    """Base class for all domain rule violations."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(RideShareError):
    """Raised when a referenced user, ride, request or message is absent."""
    status_code = 404


class AuthorizationError(RideShareError):
    """Raised when the caller has no rights over the target entity."""
    status_code = 403


class AuthenticationError(RideShareError):
    """Raised when there is no valid caller identity."""
    status_code = 401


class ValidationError(RideShareError):
    """Raised for out-of-range input, duplicate requests and self-requests."""
    status_code = 400
