class RegistrationError(Exception):
    """Base class for errors surfaced to callers as 4xx/5xx responses."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistrationError):
    status_code = 400


class NotFoundError(RegistrationError):
    status_code = 404


class ForbiddenError(RegistrationError):
    status_code = 403


class ConflictError(RegistrationError):
    status_code = 409


class LockUnavailableError(RegistrationError):
    """The per-event lock could not be acquired in time; safe to retry."""

    status_code = 503
