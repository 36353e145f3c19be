"""Standardised API error responses.

Every error leaving the API has the same envelope::

    {"error": "<message>", "code": "ERR_...", "details": {...}}

Usage
-----
    from app.utils.errors import api_error, domain_error, E

    return api_error(E.VALIDATION_REQUIRED, "status is required")
    return api_error(E.FORBIDDEN, "Only the author can edit this comment")

    @bp.errorhandler(NotFoundError)
    def _handle(error):
        return domain_error(error)
"""

from __future__ import annotations

import logging

from flask import jsonify

from app.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes, all prefixed ``ERR_``."""

    # Request shape – 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Business rule (unknown status, bad selection) – 422
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    # Identity – 401 / 403
    NOT_AUTHENTICATED = "ERR_NOT_AUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Missing comment / parent – 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Primary write failed – 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_AUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Build the error envelope.

    Parameters
    ----------
    code : str
        One of the ``E.*`` constants.
    message : str
        Human-readable explanation.
    status : int, optional
        Overrides the code's default HTTP status (400 when unmapped).
    details : dict, optional
        Structured payload such as allowed values or missing ids.

    Returns
    -------
    tuple[Response, int]
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def domain_error(error: Exception):
    """Translate an ``app.core.exceptions`` instance into the envelope."""
    if isinstance(error, NotFoundError):
        details = {"resource_id": error.resource_id} if error.resource_id is not None else None
        return api_error(E.NOT_FOUND, str(error), details=details)
    if isinstance(error, ValidationError):
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)
    if isinstance(error, NotAuthenticatedError):
        return api_error(E.NOT_AUTHENTICATED, str(error))
    if isinstance(error, StorageError):
        logger.error("Storage failure surfaced to client: %s", error)
        return api_error(E.DATABASE, "Database error")
    logger.exception("Unmapped exception type %s", type(error).__name__)
    return api_error(E.INTERNAL, "Internal server error")
