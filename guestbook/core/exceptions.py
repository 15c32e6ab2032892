from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"


class ServiceError(Exception):
    """Expected failure of a service operation.

    Callers branch on ``kind``; the HTTP layer maps each kind to a status
    code in one place.
    """

    def __init__(self, kind: ErrorKind, detail: str):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail

    def __repr__(self) -> str:
        return f"ServiceError({self.kind.value!r}, {self.detail!r})"
