"""Typed domain errors. Each carries a stable ``code`` the HTTP layer maps to a status."""
from __future__ import annotations
from typing import Optional


class DomainError(Exception):
    code = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NotFoundError(DomainError):
    code = "not_found"


class ConflictError(DomainError):
    code = "conflict"


class ValidationError(DomainError):
    code = "validation_error"


class ForbiddenError(DomainError):
    code = "forbidden"


class InvalidStateTransition(DomainError):
    code = "invalid_state_transition"

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            message or f"Invalid transition: '{current}' → '{requested}' is not allowed."
        )
        self.current = current
        self.requested = requested


class ConcurrentModificationError(DomainError):
    code = "concurrent_modification"

    def __init__(self, item_id: str, expected_version: int):
        super().__init__(
            f"Content '{item_id}' was modified concurrently "
            f"(expected version {expected_version}). Reload and retry."
        )
        self.item_id = item_id
        self.expected_version = expected_version
