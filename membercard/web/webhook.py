import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from membercard.extensions import db
from membercard.utils.time_utils import now_epoch
from membercard.webhook import IngestStatus, record_external_transaction
from membercard.web import json_body

log = logging.getLogger("web.webhook")

webhook_bp = Blueprint("webhook", __name__)


@webhook_bp.route("/transactions", methods=["POST"])
def receive():
    result = record_external_transaction(
        request.headers.get("X-API-Key"),
        json_body(),
        current_app.config.get("WEBHOOK_API_KEY"),
        db,
    )
    status = 201 if result["status"] == IngestStatus.RECORDED.value else 200
    return jsonify({"success": True, **result}), status


@webhook_bp.route("/transactions", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log.error("Health check could not reach the database", exc_info=e)
        return jsonify({"success": False, "status": "unhealthy", "database": "unreachable"}), 503
    return jsonify({"success": True, "status": "healthy", "database": "connected", "timestamp": now_epoch()})
