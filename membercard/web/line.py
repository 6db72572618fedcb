import base64
import hashlib
import hmac
import logging
from urllib.parse import parse_qs

from flask import Blueprint, current_app, jsonify, request

from membercard import messages
from membercard.domain.messaging import reply_or_log
from membercard.errors import ConfigurationError, IdentityNotFound, MemberCardError, NotLinkedError, Unauthorized
from membercard.extensions import db
from membercard.linking import register_identity, unlink_account
from membercard.presentation import present
from membercard.web import get_notifier

log = logging.getLogger("web.line")

line_bp = Blueprint("line", __name__)

# keyword -> command, matched as substrings of the lowercased message text
KEYWORDS = (
    (("balance", "ยอด", "card", "บัตร"), "balance"),
    (("link", "เชื่อม"), "link"),
    (("help", "ช่วย"), "help"),
)


def verify_signature(body: bytes, signature: str | None, channel_secret: str | None) -> None:
    if not channel_secret:
        raise ConfigurationError("LINE channel secret is not configured")
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    if not signature or not hmac.compare_digest(signature, expected):
        log.warning("Rejected LINE callback with an invalid signature")
        raise Unauthorized("Invalid signature")


def command_for(text: str) -> str:
    lowered = (text or "").strip().lower()
    for keywords, command in KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return command
    return "help"


def _balance_messages(line_user_id: str) -> list[dict]:
    try:
        view = present(db, line_user_id)
    except NotLinkedError:
        return [messages.not_linked_message()]
    return [messages.balance_summary_message(view.to_dict())]


def _respond(command: str, line_user_id: str) -> list[dict]:
    login_url = current_app.config.get("LOGIN_URL")
    if command == "balance":
        return _balance_messages(line_user_id)
    if command == "refresh":
        return [messages.refresh_instructions_message(login_url)] + _balance_messages(line_user_id)
    if command == "link":
        return [messages.link_instructions_message(login_url)]
    return [messages.help_message()]


POSTBACK_COMMANDS = {
    "view_card": "balance",
    "refresh_data": "refresh",
    "link_account": "link",
    "help": "help",
}


def handle_event(event: dict, notifier) -> None:
    event_type = event.get("type")
    line_user_id = (event.get("source") or {}).get("userId")
    reply_token = event.get("replyToken")
    if not line_user_id:
        log.info(f"Ignoring {event_type} event without a user id")
        return

    if event_type == "follow":
        register_identity(db, line_user_id)
        reply_or_log(notifier, reply_token, [messages.welcome_message()])
    elif event_type == "unfollow":
        try:
            unlink_account(db, line_user_id, deactivate_identity=True)
        except IdentityNotFound:
            log.info(f"Unfollow from unknown LINE user {line_user_id}")
    elif event_type == "message":
        message = event.get("message") or {}
        if message.get("type") != "text":
            log.info(f"Ignoring {message.get('type')} message from {line_user_id}")
            return
        reply_or_log(notifier, reply_token, _respond(command_for(message.get("text")), line_user_id))
    elif event_type == "postback":
        data = parse_qs((event.get("postback") or {}).get("data") or "")
        action = (data.get("action") or [None])[0]
        command = POSTBACK_COMMANDS.get(action)
        if command is None:
            log.info(f"Unhandled postback action {action} from {line_user_id}")
            return
        reply_or_log(notifier, reply_token, _respond(command, line_user_id))
    else:
        log.info(f"Unhandled LINE event type {event_type}")


@line_bp.route("/callback", methods=["POST"])
def callback():
    body = request.get_data()
    verify_signature(body, request.headers.get("X-Line-Signature"), current_app.config.get("LINE_CHANNEL_SECRET"))

    payload = request.get_json(silent=True) or {}
    events = payload.get("events") or []
    log.info(f"Received {len(events)} LINE event(s)")

    notifier = get_notifier()
    for event in events:
        try:
            handle_event(event, notifier)
        except MemberCardError as e:
            # one bad event must not drop the rest of the batch
            log.error(f"Failed to handle LINE {event.get('type')} event: {e.message}")
            reply_or_log(notifier, event.get("replyToken"), [messages.error_message()])

    return jsonify({"success": True, "processed": len(events)})
