from flask import Blueprint, current_app, jsonify, request

from membercard.extensions import db
from membercard.linking import (
    LinkStatus,
    check_linking,
    complete_session,
    link_account,
    search_account,
    unlink_account,
)
from membercard.sessions import DEFAULT_SESSION_TTL_SECONDS, get_session_status
from membercard.web import get_notifier, json_body, required

linking_bp = Blueprint("linking", __name__)

# HTTP status per link outcome; conflicts and misses are results, not exceptions
RESULT_STATUS = {
    LinkStatus.LINKED: 200,
    LinkStatus.PENDING_SESSION: 202,
    LinkStatus.NOT_FOUND: 404,
    LinkStatus.CONFLICT: 409,
}


def _link_response(result, **extra):
    body = {"success": result.status in (LinkStatus.LINKED, LinkStatus.PENDING_SESSION), **result.to_dict(), **extra}
    return jsonify(body), RESULT_STATUS[result.status]


@linking_bp.route("/", methods=["POST"])
def link():
    body = json_body()
    line_user_id = required(body, "lineUserId")
    strategy = required(body, "strategy")
    args = {
        "username": body.get("username"),
        "display_name": body.get("displayName"),
        "account": body.get("account") or body.get("userData"),
        "profile": body.get("profile"),
    }
    result = link_account(
        db,
        line_user_id,
        strategy,
        args,
        notifier=get_notifier(),
        session_ttl=current_app.config.get("SYNC_SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS),
    )
    if result.status is LinkStatus.PENDING_SESSION:
        return _link_response(result, login_url=current_app.config.get("LOGIN_URL"))
    return _link_response(result)


@linking_bp.route("/status", methods=["GET"])
def status():
    line_user_id = required(request.args, "lineUserId")
    linking = check_linking(db, line_user_id)
    return jsonify({"success": True, "isLinked": linking["is_linked"], **linking})


@linking_bp.route("/search", methods=["GET"])
def search():
    line_user_id = required(request.args, "lineUserId")
    result = search_account(
        db,
        line_user_id,
        request.args.get("strategy") or "manual",
        username=request.args.get("username"),
        display_name=request.args.get("displayName"),
    )
    return jsonify({"success": True, "data": result})


@linking_bp.route("/unlink", methods=["POST"])
def unlink():
    line_user_id = required(json_body(), "lineUserId")
    link = unlink_account(db, line_user_id)
    return jsonify({"success": True, "unlinked": link is not None, "link": link.to_dict() if link else None})


@linking_bp.route("/sessions/<sync_id>/complete", methods=["POST"])
def complete(sync_id):
    body = json_body()
    line_user_id = required(body, "lineUserId")
    result = complete_session(
        db,
        sync_id,
        line_user_id,
        body.get("account") or body.get("userData"),
        notifier=get_notifier(),
    )
    return _link_response(result)


@linking_bp.route("/sessions/<sync_id>", methods=["GET"])
def session_status(sync_id):
    return jsonify({"success": True, "session": get_session_status(db, sync_id)})
