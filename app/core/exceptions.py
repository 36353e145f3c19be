"""
Engine-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Anchors that cannot be located are NOT errors: the resolver returns the
``NOT_FOUND`` sentinel and the compositor simply skips the highlight.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Comment", resource_id="c-1")
    raise ValidationError("Unknown status", details={"status": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Comment").
        resource_id: The key that was looked up; a list for bulk lookups.
    """

    def __init__(self, resource: str, resource_id=None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotAuthenticatedError(Exception):
    """Raised when a mutation is attempted without an identifiable actor.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class StorageError(Exception):
    """Raised when the primary write to the store fails.

    Fatal for the operation that caused it.  Secondary writes (the status
    history ledger) never raise this; their failures are only logged.

    Args:
        resource: Entity being written.
        operation: What was attempted (e.g. "status update").
    """

    def __init__(self, resource: str, operation: str) -> None:
        self.resource = resource
        self.operation = operation
        super().__init__(f"{resource} {operation} failed")
