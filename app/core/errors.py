from typing import Optional


class TimesheetError(Exception):
    status_code = 500
    kind = "internal"
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TimesheetError):
    status_code = 400
    kind = "validation"
    default_message = "Invalid input"


class AuthenticationError(TimesheetError):
    status_code = 401
    kind = "authentication"
    default_message = "Not authenticated"


class AuthorizationError(TimesheetError):
    status_code = 403
    kind = "authorization"
    default_message = "Forbidden"


class NotFoundError(TimesheetError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class ConflictError(TimesheetError):
    status_code = 409
    kind = "conflict"
    default_message = "Already exists"


class DependencyError(TimesheetError):
    status_code = 503
    kind = "dependency"
    default_message = "Service temporarily unavailable"
