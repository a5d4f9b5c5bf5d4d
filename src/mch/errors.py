"""Typed errors for mch.

Every error raised by the core carries a stable ``ErrorCode`` so callers (the
CLI's ``--json-errors`` mode, batch migration reports) can render a clear
reason string instead of a raw underlying exception.

Structural violations (``NotFoundError``, ``DuplicateNameError``,
``InvalidHierarchyError``, ``ValidationError``) abort the single operation that
raised them. ``EmbeddingUnavailable`` is the one error the core degrades on
rather than propagates.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes."""

    # Hierarchy / lookup
    CONTEXT_NOT_FOUND = "CONTEXT_NOT_FOUND"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    SPRINT_NOT_FOUND = "SPRINT_NOT_FOUND"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    INVALID_HIERARCHY = "INVALID_HIERARCHY"

    # Input
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Providers
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    STORAGE_ERROR = "STORAGE_ERROR"
    DEPENDENCY_MISSING = "DEPENDENCY_MISSING"

    # Migration
    CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"

    # Config
    INVALID_CONFIG = "INVALID_CONFIG"


class MchError(Exception):
    """Base error with a code, a human message and optional structured details."""

    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        code: ErrorCode | None,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def reason(self) -> str:
        """Short ``CODE: message`` string used in reports."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    # Factories for the common cases

    @classmethod
    def dependency_missing(cls, feature: str, missing: list[str], suggestion: str | None = None) -> MchError:
        details: dict[str, Any] = {"feature": feature, "missing": missing}
        if suggestion:
            details["suggestion"] = suggestion
        return cls(
            ErrorCode.DEPENDENCY_MISSING,
            f"{feature} requires missing dependencies: {', '.join(missing)}",
            details,
        )


class NotFoundError(MchError):
    """A referenced Context, Project or Sprint does not exist."""

    default_code = ErrorCode.CONTEXT_NOT_FOUND

    def __init__(self, kind: str, identifier: object) -> None:
        code = {
            "context": ErrorCode.CONTEXT_NOT_FOUND,
            "project": ErrorCode.PROJECT_NOT_FOUND,
            "sprint": ErrorCode.SPRINT_NOT_FOUND,
        }.get(kind, self.default_code)
        self.kind = kind
        self.identifier = identifier
        super().__init__(code, f"{kind.capitalize()} not found: {identifier}", {"id": str(identifier)})


class DuplicateNameError(MchError):
    """A name collides with an existing sibling in the same scope."""

    default_code = ErrorCode.DUPLICATE_NAME

    def __init__(self, kind: str, name: str, scope: str | None = None) -> None:
        where = f" in {scope}" if scope else ""
        details: dict[str, Any] = {"name": name}
        if scope:
            details["scope"] = scope
        super().__init__(self.default_code, f'{kind.capitalize()} "{name}" already exists{where}', details)


class InvalidHierarchyError(MchError):
    """A sprint was paired with a project that is not its parent."""

    default_code = ErrorCode.INVALID_HIERARCHY

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(self.default_code, message, details)


class ValidationError(MchError):
    """Input failed a data-model invariant (empty name, bad range, ...)."""

    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(self.default_code, message, details)


class EmbeddingUnavailable(MchError):
    """The embedding provider is missing or failed; callers degrade gracefully."""

    default_code = ErrorCode.EMBEDDING_UNAVAILABLE

    def __init__(self, message: str = "Embedding provider unavailable") -> None:
        super().__init__(self.default_code, message)


class StorageError(MchError):
    """The storage provider failed to read or write a record."""

    default_code = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(self.default_code, message, details)


class ClassificationError(MchError):
    """A migration classifier could not derive a target for a context."""

    default_code = ErrorCode.CLASSIFICATION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(self.default_code, message)


class ConfigurationError(MchError):
    """Configuration is missing or invalid."""

    default_code = ErrorCode.INVALID_CONFIG

    def __init__(self, message: str) -> None:
        super().__init__(self.default_code, message)


def format_error_json(code: ErrorCode | str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    code_value = code.value if isinstance(code, ErrorCode) else code
    error: dict[str, Any] = {"code": code_value, "message": message}
    if details:
        error["details"] = details
    return json.dumps({"error": error}, default=str)
