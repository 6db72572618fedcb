from membercard import create_app
from membercard.sessions import sweep_expired_sessions


def test_create_app_schedules_session_sweep(mocker):
    scheduler = mocker.patch("membercard.extensions.scheduler")

    app = create_app(
        {
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SECRET_KEY": "testing",
            "SESSION_SWEEP_INTERVAL_SECONDS": 30,
        }
    )

    scheduler.init_app.assert_called_once_with(app)
    scheduler.add_job.assert_called_once_with(
        id="sweep_expired_sessions", func=sweep_expired_sessions, trigger="interval", seconds=30
    )
    scheduler.start.assert_called_once()


def test_testing_app_skips_scheduler(mocker):
    scheduler = mocker.patch("membercard.extensions.scheduler")

    create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite://"})

    scheduler.add_job.assert_not_called()


def test_registered_routes(test_client):
    rules = {rule.rule for rule in test_client.application.url_map.iter_rules()}

    assert {
        "/link/",
        "/link/status",
        "/link/unlink",
        "/link/sessions/<sync_id>/complete",
        "/link/sessions/<sync_id>",
        "/sync/",
        "/sync/extract",
        "/balance/",
        "/balance/transactions",
        "/webhook/transactions",
        "/line/callback",
    } <= rules
