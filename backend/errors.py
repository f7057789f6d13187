# backend/errors.py
from typing import Any, Optional


class MovieAppError(Exception):
    """Error base: cada subclase fija el status HTTP equivalente."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


# ---------- Validación (400, sin efectos secundarios) ----------

class ValidationError(MovieAppError):
    status_code = 400


class MissingField(ValidationError):
    pass


class InvalidType(ValidationError):
    pass


class TooFew(ValidationError):
    pass


class TooMany(ValidationError):
    pass


class DuplicateIds(ValidationError):
    pass


class MalformedId(ValidationError):
    pass


class InvalidRating(ValidationError):
    pass


class EmptyPatch(ValidationError):
    pass


class ImmutableField(ValidationError):
    pass


# ---------- Estado local / proveedor ----------

class Conflict(MovieAppError):
    status_code = 409


class NotFound(MovieAppError):
    status_code = 404


class MoviesNotFound(NotFound):
    def __init__(self, missing: list[str]):
        super().__init__("One or more movies not found", {"missing": list(missing)})
        self.missing = list(missing)


class ExternalServiceError(MovieAppError):
    status_code = 500

    def __init__(self, message: str = "External service error", details=None):
        super().__init__(message, details)


class StorageError(MovieAppError):
    status_code = 500

    def __init__(self, code: str, message: str = "Database error"):
        # Solo el código de diagnóstico sale al cliente, nunca el mensaje del driver
        super().__init__(message, {"code": code})
        self.code = code
