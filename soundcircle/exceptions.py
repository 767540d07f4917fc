from fastapi import status


class ServiceError(Exception):
    """Base for errors a service raises to be shown to the caller as-is."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class RateLimitedError(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
