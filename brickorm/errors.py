"""Custom exception hierarchy for brickORM.

All public errors inherit from :class:`BrickORMError` so callers can catch the
base class for any brickORM-specific failure.

Two families exist:

``BuildError``
    Raised while declarations are parsed and compiled (class definition or
    ``ConditionalQuery`` construction).  Always fatal, always raised before any
    compiled artefact is attached to a class.

``OperationError``
    Raised by compiled operations while they run against a database handle.
    Never retried or suppressed by brickORM.
"""
from __future__ import annotations

from typing import Any


class BrickORMError(Exception):
    """Base exception for all brickORM errors."""


# ---------------------------------------------------------------------------
# Build-time errors
# ---------------------------------------------------------------------------


class BuildError(BrickORMError):
    """Raised when a declaration or query skeleton cannot be compiled.

    Args:
        message: Human-readable description.
        code: Machine-readable error code (e.g. ``DUPLICATE_ATTRIBUTE``).
        details: Extra structured context.
        location: The offending declaration, ``"Entity"`` or ``"Entity.field"``.
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
        location: str | None = None,
    ) -> None:
        if location:
            message = f"{location}: {message}"
        super().__init__(message)
        self.code = code
        self.details: dict[str, Any] = details or {}
        self.location = location

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error response."""
        return {
            "error": self.code,
            "message": str(self),
            "location": self.location,
            "details": self.details,
        }


class SchemaError(BuildError):
    """Raised when a table or patch declaration is invalid."""


class DuplicateAttributeError(SchemaError):
    """Raised when an option is declared more than once on a field or type."""

    def __init__(self, key: str, location: str) -> None:
        super().__init__(
            f"duplicate attribute '{key}'",
            code="DUPLICATE_ATTRIBUTE",
            details={"attribute": key},
            location=location,
        )


class MissingAttributeError(SchemaError):
    """Raised when a mandatory option (``table``, ``id``, ...) is absent."""

    def __init__(self, key: str, location: str) -> None:
        super().__init__(
            f"missing attribute '{key}'",
            code="MISSING_ATTRIBUTE",
            details={"attribute": key},
            location=location,
        )


class UnknownAttributeError(SchemaError):
    """Raised when an option key is not recognised."""

    def __init__(self, key: str, allowed: list[str], location: str) -> None:
        super().__init__(
            f"unknown attribute '{key}'",
            code="UNKNOWN_ATTRIBUTE",
            details={"attribute": key, "allowed_attributes": allowed},
            location=location,
        )


class InvalidAttributeError(SchemaError):
    """Raised when an option has a value of the wrong shape."""

    def __init__(self, key: str, value: Any, expected: str, location: str) -> None:
        super().__init__(
            f"attribute '{key}' expects {expected}, got {value!r}",
            code="INVALID_ATTRIBUTE",
            details={"attribute": key, "expected": expected},
            location=location,
        )


class UnknownIdentifierFieldError(SchemaError):
    """Raised when ``id`` does not name a field of the declaration."""

    def __init__(self, field: str, fields: list[str], location: str) -> None:
        super().__init__(
            f"id '{field}' does not refer to a field of the struct",
            code="UNKNOWN_IDENTIFIER_FIELD",
            details={"id": field, "fields": fields},
            location=location,
        )


class DefaultWithoutInsertableError(SchemaError):
    """Raised when a field is marked ``default`` on a non-insertable table."""

    def __init__(self, field: str, location: str) -> None:
        super().__init__(
            f"'default' on field '{field}' has no effect without 'insertable'",
            code="DEFAULT_WITHOUT_INSERTABLE",
            details={"field": field},
            location=location,
        )


class NameCollisionError(SchemaError):
    """Raised when a generated accessor name is already taken."""

    def __init__(self, name: str, location: str) -> None:
        super().__init__(
            f"generated name '{name}' collides with an existing attribute",
            code="NAME_COLLISION",
            details={"name": name},
            location=location,
        )


class UnknownPatchFieldError(SchemaError):
    """Raised when a patch field does not exist on its target entity."""

    def __init__(self, field: str, target: str, location: str) -> None:
        super().__init__(
            f"patch field '{field}' is not a non-identifier field of '{target}'",
            code="UNKNOWN_PATCH_FIELD",
            details={"field": field, "target": target},
            location=location,
        )


class UnresolvedPatchTargetError(SchemaError):
    """Raised when a patch names its target entity by a path that does not import."""

    def __init__(self, path: str, location: str) -> None:
        super().__init__(
            f"patch target '{path}' does not name an entity class",
            code="UNRESOLVED_PATCH_TARGET",
            details={"target": path},
            location=location,
        )


class QueryCompileError(BuildError):
    """Raised when a conditional query skeleton cannot be compiled."""


class BranchCapacityExceededError(QueryCompileError):
    """Raised when a skeleton has more branch points than allowed."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"query has {count} branch points, at most {limit} are supported "
            f"({2 ** limit} variants)",
            code="BRANCH_CAPACITY_EXCEEDED",
            details={"branch_points": count, "max_branch_points": limit},
        )


class BranchResultShapeMismatchError(QueryCompileError):
    """Raised when query variants do not decode into the same row shape."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            code="BRANCH_RESULT_SHAPE_MISMATCH",
            details=details or {},
        )


class InvalidSkeletonError(QueryCompileError):
    """Raised when a skeleton contains an unsupported token."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="INVALID_SKELETON", details=details or {})


class CompilationError(BuildError):
    """Raised when lowering fails for a reason unrelated to the declaration.

    Args:
        message: Human-readable description.
        operation: The operation being compiled when the error occurred.
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(
            message,
            code="COMPILATION_ERROR",
            details={"operation": operation} if operation else {},
        )
        self.operation = operation


# ---------------------------------------------------------------------------
# Runtime errors
# ---------------------------------------------------------------------------


class OperationError(BrickORMError):
    """Base class for errors raised by compiled operations.

    Args:
        message: Human-readable description.
        sql: The statement being executed, when known.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class ConnectionFailure(OperationError):
    """Raised when the underlying driver fails to execute a statement.

    The driver's exception is always available as ``__cause__``.
    """


class RowNotFoundError(OperationError):
    """Raised when zero rows were affected or returned where one was required."""


class MultipleRowsError(OperationError):
    """Raised when a single-row lookup matched more than one row."""


class DecodeFailureError(OperationError):
    """Raised when a row cannot be materialized into the declared shape."""


class UnmatchedBranchError(OperationError):
    """Raised when no conditional query branch matched.

    Compiled plans always end with an unguarded branch, so reaching this is a
    programming defect rather than a recoverable condition.
    """


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------


class ReservedIdentifierWarning(UserWarning):
    """Issued when a field or column name is a reserved word of the backend.

    The identifier is quoted wherever it is emitted, so the declaration still
    compiles.
    """
