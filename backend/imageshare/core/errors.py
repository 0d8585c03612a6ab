"""Error taxonomy shared by services and the HTTP layer.

Services raise these before mutating anything; ``main.py`` turns them into the
error envelope with the status code and ``code`` declared on each class.
"""


class AppError(Exception):
    status_code = 400
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidCredentials(AppError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Incorrect email or password"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class NotPending(Conflict):
    code = "not_pending"
    default_message = "Image has already been reviewed"


class InvalidToken(AppError):
    status_code = 400
    code = "invalid_token"
    default_message = "Invalid or expired verification token"


class DependencyFailure(AppError):
    # Raised inside best-effort collaborators; callers log it and move on.
    status_code = 502
    code = "dependency_failure"
    default_message = "External dependency failed"
