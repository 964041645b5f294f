class RentTrackerError(Exception):
    """Base error carrying the HTTP status an entry point should answer with."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(RentTrackerError):
    status = 400


class AuthenticationError(RentTrackerError):
    status = 401


class NotRegisteredError(RentTrackerError):
    status = 403


class NotFoundError(RentTrackerError):
    status = 404


class ConflictError(RentTrackerError):
    status = 409


class ServiceNotConfiguredError(RentTrackerError):
    status = 503
