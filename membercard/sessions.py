"""
SyncSession lifecycle for the deferred ("socket") linking flow.

pending -> completed | failed | expired. Completion and failure are driven by
the linking resolver; expiry is applied by a periodic sweep that only touches
sessions still pending past their expiry.
"""

import logging

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.identity import profile_fields
from membercard.domain.sync_sessions import SyncSession
from membercard.errors import SessionNotFound, ValidationError
from membercard.extensions import db as _db
from membercard.extensions import scheduler
from membercard.models.identity_repository import SqlAlchemyIdentityRepository
from membercard.models.sync_session_repository import SqlAlchemySyncSessionRepository
from membercard.models.unit_of_work import transaction
from membercard.utils.time_utils import now_epoch

log = logging.getLogger("sessions")

DEFAULT_SESSION_TTL_SECONDS = 600


def start_session(db: SQLAlchemy, line_user_id: str, profile: dict = None,
                  ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS, now: int = None) -> SyncSession:
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")
    now = now_epoch() if now is None else now

    with transaction(db):
        SqlAlchemyIdentityRepository(db).upsert(line_user_id, profile_fields(profile), now)
        session = SqlAlchemySyncSessionRepository(db).create(line_user_id, ttl_seconds, now)

    log.info(f"Registered sync session {session.sync_id} for {line_user_id}, expires at {session.expires_at}")
    return session


def get_session_status(db: SQLAlchemy, sync_id: str, now: int = None) -> dict:
    now = now_epoch() if now is None else now
    session = SqlAlchemySyncSessionRepository(db).get(sync_id)
    if session is None:
        raise SessionNotFound(f"Sync session {sync_id} not found", sync_id=sync_id)
    status = session.to_dict(now)
    # Report a lapsed session as expired even before the sweep has run
    if session.is_expired(now):
        status["status"] = "expired"
    return status


def expire_sessions(db: SQLAlchemy, now: int = None) -> int:
    now = now_epoch() if now is None else now
    with transaction(db):
        expired = SqlAlchemySyncSessionRepository(db).expire_pending(now)
    if expired:
        log.info(f"Expired {expired} pending sync session(s)")
    return expired


def sweep_expired_sessions():
    with scheduler.app.app_context():
        log.info("Sweeping expired sync sessions")
        expire_sessions(_db)
