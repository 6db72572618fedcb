from flask import current_app, jsonify, request

from membercard.domain.messaging import LineMessagingClient
from membercard.errors import (
    ConfigurationError,
    Conflict,
    MemberCardError,
    NotFound,
    NotLinkedError,
    Unauthorized,
    UpstreamUnavailable,
    ValidationError,
)

# Most specific first; NotLinkedError is an expected state rather than a failure
STATUS_CODES = (
    (NotLinkedError, 200),
    (ValidationError, 400),
    (Unauthorized, 401),
    (NotFound, 404),
    (Conflict, 409),
    (ConfigurationError, 500),
    (UpstreamUnavailable, 503),
)


def status_for(error: MemberCardError) -> int:
    for error_type, status in STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 500


def handle_error(error: MemberCardError):
    body = {"success": False, **error.to_dict()}
    if isinstance(error, NotLinkedError):
        body["isLinked"] = False
    return jsonify(body), status_for(error)


def json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def required(source: dict, key: str) -> str:
    value = source.get(key)
    if value is None or not str(value).strip():
        raise ValidationError(f"{key} is required", field=key)
    return str(value).strip()


def get_notifier() -> LineMessagingClient | None:
    if not current_app.config.get("LINE_CHANNEL_ACCESS_TOKEN"):
        return None
    return LineMessagingClient.from_config(current_app.config)
