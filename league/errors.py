"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``league.app`` renders them as
``{"message": ..., "detail": ...}`` with the matching status code.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code = 500

    def __init__(self, message: str, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {'message': self.message}
        if self.detail is not None:
            body['detail'] = self.detail
        return body


class ValidationError(ServiceError):
    """Malformed or missing input, bad enum value, mismatched team reference."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Missing, expired or invalid credential."""
    status_code = 401


class AuthorizationError(ServiceError):
    """Actor is not an admin of the resource."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Duplicate record, already-a-member, or a stale aggregate version."""
    status_code = 409


class InternalError(ServiceError):
    status_code = 500
