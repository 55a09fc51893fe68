"""
Business-rule errors raised by the lifecycle services.
Each carries the HTTP status the API layer answers with.
"""
from typing import Iterable, List, Optional


class LifecycleError(Exception):
    kind = "LifecycleError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "message": self.message}


class InvalidStatus(LifecycleError):
    kind = "InvalidStatus"


class InvalidTransition(LifecycleError):
    kind = "InvalidTransition"


class MissingField(LifecycleError):
    kind = "MissingField"

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields: List[str] = list(fields)
        super().__init__(message or f"Missing required fields: {', '.join(self.fields)}")

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class InvalidValue(LifecycleError):
    kind = "InvalidValue"


class Forbidden(LifecycleError):
    kind = "Forbidden"
    status_code = 403


class AccessDenied(LifecycleError):
    kind = "AccessDenied"
    status_code = 403


class CrossCampusReference(LifecycleError):
    kind = "CrossCampusReference"
    status_code = 403


class NotFound(LifecycleError):
    kind = "NotFound"
    status_code = 404


class Conflict(LifecycleError):
    kind = "Conflict"
    status_code = 409


def reject_nulls(changes: dict, fields: Iterable[str]) -> None:
    """Partial updates may omit a required column, never null it."""
    nulled = [name for name in fields if name in changes and changes[name] is None]
    if nulled:
        raise InvalidValue(f"Fields cannot be null: {', '.join(nulled)}")
