import logging
from flask import Flask
from membercard.config import Config

def create_app(test_config=None):
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__, instance_relative_config=True)
    if test_config is None:
        app.config.from_object(Config)
    else:
        app.config.from_mapping(test_config)

    from .errors import MemberCardError
    from .extensions import db, scheduler
    from .sessions import sweep_expired_sessions
    from .web import handle_error

    # Register models before create_all
    from .models import account, identity, link, sync_session, transaction  # noqa: F401

    db.init_app(app)
    # Create tables (if migrations are not yet set up)
    with app.app_context():
        db.create_all()

    from .web.balance import balance_bp
    from .web.line import line_bp
    from .web.linking import linking_bp
    from .web.sync import sync_bp
    from .web.webhook import webhook_bp

    app.register_blueprint(linking_bp, url_prefix="/link")
    app.register_blueprint(sync_bp, url_prefix="/sync")
    app.register_blueprint(balance_bp, url_prefix="/balance")
    app.register_blueprint(webhook_bp, url_prefix="/webhook")
    app.register_blueprint(line_bp, url_prefix="/line")
    app.register_error_handler(MemberCardError, handle_error)

    # Skip scheduler setup when testing
    if app.config["TESTING"]:
        return app

    scheduler.init_app(app)
    scheduler.add_job(
        id="sweep_expired_sessions",
        func=sweep_expired_sessions,
        trigger="interval",
        seconds=int(app.config.get("SESSION_SWEEP_INTERVAL_SECONDS", 60)),
    )
    scheduler.start()

    return app
