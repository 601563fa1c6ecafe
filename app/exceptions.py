"""Service-layer errors.

Services raise these; ``app.middleware.error_handler`` turns them into
``{"detail": ...}`` responses with the matching status code.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceError, ValueError):
    status_code = 400


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class RateLimitError(ServiceError):
    status_code = 429
