# blueprints/clashes/errors.py
from __future__ import annotations
from typing import Any


class ClashError(Exception):
    """Ошибка движка конфликтов с машинным кодом и HTTP-статусом."""

    code = "CLASH_ERROR"
    status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


# --- input errors ---
class InvalidInput(ClashError):
    code = "BAD_REQUEST"
    status = 400


# --- consistency errors ---
class Forbidden(ClashError):
    code = "FORBIDDEN"
    status = 403


class NotFound(ClashError):
    code = "NOT_FOUND"
    status = 404


class AlreadySignedOff(ClashError):
    code = "ALREADY_SIGNED_OFF"
    status = 409


class AlreadyResolved(ClashError):
    code = "ALREADY_RESOLVED"
    status = 409


class ConcurrentUpdate(ClashError):
    code = "CONCURRENT_UPDATE"
    status = 409


# --- dependency errors ---
class StorageError(ClashError):
    code = "STORAGE_ERROR"
    status = 500


class RescheduleFailed(ClashError):
    code = "RESCHEDULE_FAILED"
    status = 500
