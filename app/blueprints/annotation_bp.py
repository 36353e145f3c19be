"""
Annotation Blueprint — highlight decorations and pointer hit-testing.

Endpoints:
    POST /api/v1/documents/<document_id>/decorations
        Body: { document: <node tree> | text: "<plain text>", highlighted_comment_id? }
        Returns the decorations to draw plus the ids of orphaned comments.

    POST /api/v1/documents/<document_id>/hit-test
        Body: { target: [ {comment_id?, tag?}, ...parents ], at_point?: [ {comment_id?}, ... ] }
        Returns the comment owning the event, or null.

The caller supplies the current document; nothing is stored.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from app.annotations.anchoring import NOT_FOUND, DocumentTree, resolve
from app.annotations.constants import STATUS_RESOLVED
from app.annotations.decorations import compose
from app.annotations.hit_testing import ElementNode, route_hit
from app.core.exceptions import StorageError, ValidationError
from app.services import comment_service
from app.utils.errors import E, api_error, domain_error
from app.utils.helpers import json_body

logger = logging.getLogger(__name__)

annotation_bp = Blueprint("annotations", __name__, url_prefix="/api/v1")


@annotation_bp.errorhandler(ValidationError)
@annotation_bp.errorhandler(StorageError)
def _handle_domain_error(error):
    return domain_error(error)


def _document_tree(data: dict):
    """Build a DocumentTree from a node tree or plain text; (tree, error)."""
    node_tree = data.get("document")
    if node_tree is not None:
        if not isinstance(node_tree, dict):
            return None, "document must be a node tree object"
        return DocumentTree.from_node_tree(node_tree), None
    text = data.get("text")
    if isinstance(text, str):
        return DocumentTree.from_plain_text(text), None
    return None, "document or text is required"


@annotation_bp.route("/documents/<document_id>/decorations", methods=["POST"])
def decorations(document_id):
    data = json_body()
    tree, err = _document_tree(data)
    if err:
        return api_error(E.VALIDATION_REQUIRED, err)

    comments = comment_service.list_document_comments(document_id)
    drawn = compose(
        comments,
        data.get("highlighted_comment_id"),
        tree,
        tooltip_chars=current_app.config.get("COMMENT_TOOLTIP_CHARS", 100),
    )

    drawn_ids = {d.comment_id for d in drawn}
    orphaned = [
        c.id for c in comments
        if c.status != STATUS_RESOLVED
        and c.anchor is not None
        and c.id not in drawn_ids
        and resolve(tree, c.anchor) is NOT_FOUND
    ]
    if orphaned:
        logger.info(
            "%d orphaned comment(s) on document", len(orphaned),
            extra={"document_id": document_id},
        )

    return jsonify({
        "document_id": document_id,
        "decorations": [d.to_dict() for d in drawn],
        "orphaned_comment_ids": orphaned,
    }), 200


@annotation_bp.route("/documents/<document_id>/hit-test", methods=["POST"])
def hit_test(document_id):
    data = json_body()
    chain = data.get("target") or []
    at_point = data.get("at_point") or []
    if not isinstance(chain, list) or not isinstance(at_point, list):
        return api_error(E.VALIDATION_INVALID, "target and at_point must be lists")
    if not all(isinstance(entry, dict) for entry in chain + at_point):
        return api_error(E.VALIDATION_INVALID, "target and at_point entries must be objects")

    target = ElementNode.from_chain(chain)
    stacked = [ElementNode.from_chain([entry]) for entry in at_point]
    comments = comment_service.list_document_comments(document_id)

    comment = route_hit(
        target,
        stacked,
        comments,
        max_depth=current_app.config.get("HIT_TEST_MAX_DEPTH", 5),
    )
    return jsonify({"comment": comment.to_dict() if comment is not None else None}), 200
