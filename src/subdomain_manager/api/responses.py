"""
Shared helpers for the JSON API blueprints.
"""
import logging
from typing import Any, Dict

from flask import current_app, jsonify, request

from ..result import (
    ConflictError,
    Err,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'subdomain_manager'

STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ExternalServiceError: 502,
    PersistenceError: 500,
}


def get_provisioner():
    """Return the SubdomainProvisioner created by the app factory."""
    return current_app.extensions[EXTENSION_KEY]


def json_body() -> Dict[str, Any]:
    """Request JSON as a dict; anything else becomes an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(result: Err):
    """Render an Err result as ``{"success": false, "error": ...}``."""
    error = result.error
    status = STATUS_CODES.get(type(error), 500)
    body = {'success': False, 'error': error.message, 'code': error.code}
    if isinstance(error, ExternalServiceError):
        body['system'] = error.system
    if status >= 500:
        logger.error(f"{request.method} {request.path} failed: {error.message}")
    return jsonify(body), status
