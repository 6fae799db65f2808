# Overview: App-wide JSON error handlers.

from __future__ import annotations

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from .errors import StockroomError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """
    Map errors to {"error": {"code", "message", "details"}}.

    Typed stockroom errors keep their own status; unexpected exceptions are
    logged with traceback and surface as a generic 500.
    """

    @app.errorhandler(StockroomError)
    def handle_stockroom_error(exc: StockroomError):
        logger.info("request failed code=%s message=%s", exc.code, exc.message)
        return jsonify({"error": exc.to_dict()}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        body = {
            "code": (exc.name or "HTTP_ERROR").upper().replace(" ", "_"),
            "message": exc.description,
            "details": {},
        }
        return jsonify({"error": body}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error")
        body = {"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
        return jsonify({"error": body}), 500
