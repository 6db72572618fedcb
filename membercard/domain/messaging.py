import logging

import requests as r

from membercard.errors import UpstreamUnavailable

log = logging.getLogger("messaging")


class LineMessagingClient:
    """Outbound calls to the LINE Messaging API."""

    def __init__(self, access_token: str, api_url: str = "https://api.line.me", timeout: int = 5):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "LineMessagingClient":
        return cls(
            config.get("LINE_CHANNEL_ACCESS_TOKEN", ""),
            config.get("LINE_API_URL", "https://api.line.me"),
            int(config.get("NOTIFICATION_TIMEOUT_SECONDS", 5)),
        )

    def get_auth_header(self):
        return {"Authorization": f"Bearer {self.access_token}"}

    def _post(self, endpoint: str, body: dict) -> None:
        try:
            response = r.post(
                f"{self.api_url}{endpoint}",
                json=body,
                headers=self.get_auth_header(),
                timeout=self.timeout,
            )
        except r.exceptions.RequestException as e:
            raise UpstreamUnavailable(f"LINE API request to {endpoint} failed") from e
        if not response.ok:
            log.error(f"LINE API {endpoint} returned {response.status_code}: {response.text}")
            raise UpstreamUnavailable(
                f"LINE API {endpoint} returned {response.status_code}",
                status_code=response.status_code,
            )

    def push(self, line_user_id: str, messages: list[dict]) -> None:
        self._post("/v2/bot/message/push", {"to": line_user_id, "messages": messages})

    def reply(self, reply_token: str, messages: list[dict]) -> None:
        self._post("/v2/bot/message/reply", {"replyToken": reply_token, "messages": messages})


def notify(client: LineMessagingClient | None, line_user_id: str, messages: list[dict]) -> bool:
    """
    Push messages to a user without letting a delivery failure escape.

    Notifications follow a committed state change; they must never undo it.
    """
    if client is None or not messages:
        return False
    try:
        client.push(line_user_id, messages)
        return True
    except UpstreamUnavailable as e:
        log.error(f"Failed to push notification to {line_user_id}: {e.message}")
        return False


def reply_or_log(client: LineMessagingClient | None, reply_token: str | None, messages: list[dict]) -> bool:
    if client is None or not reply_token or not messages:
        return False
    try:
        client.reply(reply_token, messages)
        return True
    except UpstreamUnavailable as e:
        log.error(f"Failed to reply to LINE event: {e.message}")
        return False
