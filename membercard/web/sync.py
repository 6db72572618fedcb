from flask import Blueprint, current_app, jsonify

from membercard.extensions import db
from membercard.extractor import extract_candidate
from membercard.sync import DEFAULT_FRESHNESS_SECONDS, sync_account
from membercard.web import get_notifier, json_body, required

sync_bp = Blueprint("sync", __name__)


def _sync(line_user_id, observed, force, source):
    return sync_account(
        db,
        line_user_id,
        observed,
        force=force,
        notifier=get_notifier(),
        freshness_seconds=current_app.config.get("SYNC_FRESHNESS_SECONDS", DEFAULT_FRESHNESS_SECONDS),
        source=source,
    )


@sync_bp.route("/", methods=["POST"])
def sync():
    body = json_body()
    line_user_id = required(body, "lineUserId")
    result = _sync(line_user_id, body.get("data") or {}, bool(body.get("force")), body.get("source") or "sync")
    return jsonify({"success": True, **result.to_dict()})


@sync_bp.route("/extract", methods=["POST"])
def extract():
    body = json_body()
    line_user_id = required(body, "lineUserId")
    candidate = extract_candidate(body.get("text"))
    if candidate is None:
        return jsonify({"success": False, "error": "no_data", "message": "No account data recognised"}), 422

    result = _sync(line_user_id, candidate.data, bool(body.get("force")), "extractor")
    return jsonify({"success": True, "candidate": candidate.to_dict(), **result.to_dict()})
