"""Exception hierarchy for the sales office API.

Every exception carries the HTTP status the API answers with, so endpoints can
let them propagate to the handler installed by ``restapi.router.create_app``.
"""


class OfficeError(Exception):
    """Base exception for all domain errors."""

    status_code = 500


class EntityNotFoundError(OfficeError):
    """Raised when a referenced row does not exist."""

    status_code = 404


class ValidationError(OfficeError):
    """Raised when input fails a business rule."""

    status_code = 400


class PermissionDeniedError(OfficeError):
    """Raised when the current user lacks a permission."""

    status_code = 403


class AccountDisabledError(PermissionDeniedError):
    """Raised when an inactive user tries to use the API."""


class StaleDataError(OfficeError):
    """Raised when the database no longer matches what the caller saw."""

    status_code = 409


class MergeError(OfficeError):
    """Raised when a sale merge is rejected or cannot complete."""

    status_code = 409


class RetryExhaustedError(OfficeError):
    """Raised when a retryable operation keeps failing."""

    status_code = 503
