import base64
import hashlib
import hmac
import json

import pytest

from membercard import create_app
from membercard.domain.accounts import normalize_account_data
from membercard.extensions import db as _db
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.identity_repository import SqlAlchemyIdentityRepository

NOW = 1_700_000_000
# Old enough to be outside the sync freshness window
STALE = NOW - 3600

LINE_CHANNEL_SECRET = "line_channel_secret"
WEBHOOK_API_KEY = "webhook_api_key"


@pytest.fixture(scope="function")
def test_client():
    test_config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SECRET_KEY": "testing",
        "LINE_CHANNEL_ACCESS_TOKEN": "line_access_token",
        "LINE_CHANNEL_SECRET": LINE_CHANNEL_SECRET,
        "LINE_API_URL": "https://api.line.me",
        "WEBHOOK_API_KEY": WEBHOOK_API_KEY,
        "LOGIN_URL": "https://prima789.com/login",
    }
    flask_app = create_app(test_config)

    with flask_app.test_client() as testing_client:
        with flask_app.app_context():
            yield testing_client


@pytest.fixture(scope="function")
def db(test_client):
    return _db


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def line_api(requests_mock):
    requests_mock.post("https://api.line.me/v2/bot/message/push", json={})
    requests_mock.post("https://api.line.me/v2/bot/message/reply", json={})
    return requests_mock


@pytest.fixture
def seed_account(db):
    def seed(username, updated_at=STALE, **data):
        account = SqlAlchemyAccountRepository(db).upsert(username, normalize_account_data(data), updated_at)
        db.session.commit()
        return account

    return seed


@pytest.fixture
def seed_identity(db):
    def seed(line_user_id, display_name=None, created_at=STALE):
        fields = {"display_name": display_name} if display_name else {}
        identity = SqlAlchemyIdentityRepository(db).upsert(line_user_id, fields, created_at)
        db.session.commit()
        return identity

    return seed


@pytest.fixture
def demo_user(seed_account):
    return seed_account(
        "demo_user",
        first_name="Somchai",
        last_name="Jaidee",
        tel="0812345678",
        available=1000.0,
        credit_limit=5000.0,
        bet_credit=250.0,
        tier="Gold",
        points=12000,
    )


def sign(body: bytes, secret: str = LINE_CHANNEL_SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode("utf-8")


@pytest.fixture
def line_callback(test_client):
    def post(events, signature=None):
        body = json.dumps({"destination": "bot", "events": events}).encode("utf-8")
        return test_client.post(
            "/line/callback",
            data=body,
            content_type="application/json",
            headers={"X-Line-Signature": signature if signature is not None else sign(body)},
        )

    return post
