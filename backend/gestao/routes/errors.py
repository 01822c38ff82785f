# Overview: Maps service-layer exceptions to JSON error responses.

from flask import current_app, jsonify

from ..validation import ConflictError, NotFoundError, PersistenceError, ValidationError

# Caught by every route; anything else is an unexpected 500.
DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError, PersistenceError)


def json_error(exc: Exception):
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, PersistenceError):
        current_app.logger.error("Persistence failure: %s", exc)
    return jsonify({"error": "Internal server error"}), 500
