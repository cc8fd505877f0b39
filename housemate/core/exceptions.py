"""Service-level error taxonomy.

Services raise these instead of ``HTTPException``; ``housemate.main``
renders them as ``{"success": false, "kind": ..., "message": ...}``.
"""


class ServiceError(Exception):
    """Base class for failures surfaced to API callers."""

    kind = "server-error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    kind = "not-found"
    status_code = 404


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 409


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = 403


class ValidationError(ServiceError):
    kind = "validation"
    status_code = 422


class StorageError(ServiceError):
    kind = "storage-failure"
    status_code = 500
