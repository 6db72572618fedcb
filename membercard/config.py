import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or "super-secret-key"
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URI"
    ) or "sqlite:///" + os.path.join(basedir, "membercard.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LINE_CHANNEL_ACCESS_TOKEN = os.environ.get("LINE_CHANNEL_ACCESS_TOKEN") or ""
    LINE_CHANNEL_SECRET = os.environ.get("LINE_CHANNEL_SECRET") or ""
    LINE_API_URL = os.environ.get("LINE_API_URL") or "https://api.line.me"
    WEBHOOK_API_KEY = os.environ.get("WEBHOOK_API_KEY") or ""
    LOGIN_URL = os.environ.get("MEMBER_LOGIN_URL") or "https://prima789.com/login"

    SYNC_FRESHNESS_SECONDS = int(os.environ.get("SYNC_FRESHNESS_SECONDS") or 300)
    SYNC_SESSION_TTL_SECONDS = int(os.environ.get("SYNC_SESSION_TTL_SECONDS") or 600)
    SESSION_SWEEP_INTERVAL_SECONDS = int(
        os.environ.get("SESSION_SWEEP_INTERVAL_SECONDS") or 60
    )
    NOTIFICATION_TIMEOUT_SECONDS = int(
        os.environ.get("NOTIFICATION_TIMEOUT_SECONDS") or 5
    )
