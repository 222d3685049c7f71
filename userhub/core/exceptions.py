"""
Error taxonomy for the user service.

Every error raised while answering a request carries the HTTP status it
maps to, so the router and the coordinator can turn it into a
``{"message": ...}`` response without inspecting the exception type.
"""


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class UserHubError(Exception):
    """Base error that carries an HTTP status."""

    status = 500

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_payload(self) -> dict:
        """Response body for this error."""
        return {"message": self.message}


class ClientInputError(UserHubError):
    """Malformed id, malformed body or an invalid field."""

    status = 400


class NotFoundError(UserHubError):
    """Valid id with no matching record."""

    status = 404


class RouteNotFoundError(UserHubError):
    """No matching method/path combination."""

    status = 404


class DispatchError(UserHubError):
    """The worker handling a request went away before answering."""

    status = 502


class NoWorkersAvailableError(UserHubError):
    """Cluster mode with an empty live worker set."""

    status = 503


class DispatchTimeoutError(UserHubError):
    """The worker did not answer within the dispatch timeout."""

    status = 504
