"""
Typed failures raised by the service layer.

Each error carries the HTTP status it maps to; ``create_app`` registers a
single handler that renders any ``ServiceError`` as ``{"error": message}``.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class LeadTimeError(ValidationError):
    pass


class InvalidCategoryError(ValidationError):
    pass


class InvalidTimeError(ValidationError):
    pass


class InvalidQuantityError(ValidationError):
    pass


class InvalidDateError(ValidationError):
    pass


class SlotConflictError(ServiceError):
    status_code = 409


class NotFoundError(ServiceError):
    status_code = 404


class ImmutableStateError(ServiceError):
    status_code = 403


class AuthError(ServiceError):
    status_code = 401


class ForbiddenError(AuthError):
    status_code = 403
