import pytest

from membercard.domain.messaging import LineMessagingClient, notify, reply_or_log
from membercard.errors import UpstreamUnavailable
from membercard.messages import text


@pytest.fixture
def client():
    return LineMessagingClient("access_token", "https://api.line.me/", timeout=5)


def test_push_posts_messages(client, requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/push", json={})

    client.push("U123", [text("hello")])

    request = requests_mock.last_request
    assert request.headers["Authorization"] == "Bearer access_token"
    assert request.json() == {"to": "U123", "messages": [{"type": "text", "text": "hello"}]}


def test_reply_posts_reply_token(client, requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/reply", json={})

    client.reply("reply_token", [text("hello")])

    assert requests_mock.last_request.json()["replyToken"] == "reply_token"


def test_push_raises_on_error_status(client, requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/push", status_code=400, json={"message": "bad"})

    with pytest.raises(UpstreamUnavailable) as e:
        client.push("U123", [text("hello")])
    assert e.value.details["status_code"] == 400


def test_notify_swallows_delivery_failures(client, requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/push", status_code=500)

    assert notify(client, "U123", [text("hello")]) is False


def test_notify_without_client_is_a_no_op():
    assert notify(None, "U123", [text("hello")]) is False


def test_notify_returns_true_on_success(client, requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/push", json={})

    assert notify(client, "U123", [text("hello")]) is True


def test_reply_or_log_swallows_network_errors(client, mocker):
    mocker.patch.object(client, "reply", side_effect=UpstreamUnavailable("down"))

    assert reply_or_log(client, "reply_token", [text("hello")]) is False


def test_from_config():
    client = LineMessagingClient.from_config(
        {"LINE_CHANNEL_ACCESS_TOKEN": "token", "NOTIFICATION_TIMEOUT_SECONDS": "3"}
    )
    assert client.api_url == "https://api.line.me"
    assert client.timeout == 3
    assert client.get_auth_header() == {"Authorization": "Bearer token"}
