# ward_planner/errors.py
from fastapi import HTTPException, status


class WardPlannerError(HTTPException):
    """Base exception for every failure the ward planner core reports.

    Inherits from FastAPI's HTTPException so the API layer can render it
    directly, while `error_code` gives callers outside HTTP (the sync
    controller, the CLI) a stable discriminator.
    """

    error_code: str = "internal_error"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

    def to_response_body(self) -> dict:
        return {"error": self.error_code, "detail": self.detail}


class AuthenticationFailedError(WardPlannerError):
    """Raised when no ward matches the submitted passphrase.

    User-correctable: the client shows an inline message and lets the
    user try again. No backoff is applied.
    """

    error_code = "authentication_failed"

    def __init__(self, detail: str = "Invalid password."):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class TenantNotFoundError(WardPlannerError):
    """Raised when a ward id does not exist in the store.

    The ward set is closed, so this is unexpected in normal operation.
    """

    error_code = "not_found"

    def __init__(self, detail: str = "Ward not found."):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class StorageUnavailableError(WardPlannerError):
    """Raised when the storage backend (or the remote API) cannot be reached.

    Transient. Clients surface it as an offline indicator and retry on the
    next user-triggered edit.
    """

    error_code = "storage_unavailable"

    def __init__(self, detail: str = "Storage backend unavailable."):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class ValidationFailedError(WardPlannerError):
    """Raised for a malformed request, e.g. a missing required field."""

    error_code = "validation_failed"

    def __init__(self, detail: str = "Malformed request."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


ERRORS_BY_CODE = {
    cls.error_code: cls
    for cls in (
        AuthenticationFailedError,
        TenantNotFoundError,
        StorageUnavailableError,
        ValidationFailedError,
    )
}
