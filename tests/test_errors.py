"""
Error envelope tests.
"""

import pytest

from app.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.utils.errors import E, api_error, domain_error


def test_api_error_default_status():
    response, status = api_error(E.FORBIDDEN, "nope")
    assert status == 403
    assert response.get_json() == {"error": "nope", "code": "ERR_FORBIDDEN"}


def test_api_error_status_override_and_details():
    response, status = api_error(E.VALIDATION_INVALID, "bad", status=418, details={"x": 1})
    assert status == 418
    assert response.get_json()["details"] == {"x": 1}


@pytest.mark.parametrize("error,status,code", [
    (NotFoundError("Comment", ["a", "b"]), 404, E.NOT_FOUND),
    (ValidationError("Invalid status", {"allowed": ["active"]}), 422, E.VALIDATION_CONSTRAINT),
    (NotAuthenticatedError(), 401, E.NOT_AUTHENTICATED),
    (StorageError("Comment", "status update"), 500, E.DATABASE),
    (RuntimeError("surprise"), 500, E.INTERNAL),
])
def test_domain_error_mapping(error, status, code):
    response, http_status = domain_error(error)
    assert http_status == status
    assert response.get_json()["code"] == code


def test_storage_error_message_is_generic():
    response, _ = domain_error(StorageError("Comment", "status update"))
    assert response.get_json()["error"] == "Database error"


def test_not_found_lists_missing_ids():
    response, _ = domain_error(NotFoundError("Comment", ["ghost"]))
    assert response.get_json()["details"] == {"resource_id": ["ghost"]}
