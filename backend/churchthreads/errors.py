"""Domain exceptions raised by the service layer.

Routers let these propagate; ``churchthreads.main`` renders them as
``{"detail": message}`` with the exception's status code.
"""


class ChurchThreadsError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ChurchThreadsError):
    status_code = 422

    def __init__(self, errors: list):
        self.errors = errors
        super().__init__(errors[0].message if errors else "Validation failed")


class NotFound(ChurchThreadsError):
    status_code = 404


class Forbidden(ChurchThreadsError):
    status_code = 403


class Conflict(ChurchThreadsError):
    status_code = 409


class InviteError(ChurchThreadsError):
    status_code = 400


class ConfigurationError(ChurchThreadsError):
    status_code = 500


class IdentityProviderError(ChurchThreadsError):
    status_code = 502


class EmailDeliveryError(ChurchThreadsError):
    status_code = 502
