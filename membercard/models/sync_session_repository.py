from flask_sqlalchemy import SQLAlchemy

from membercard.domain.sync_sessions import SessionStatus, SyncSession, generate_sync_id
from membercard.models.sync_session import SyncSessionModel


class SqlAlchemySyncSessionRepository:
    def __init__(self, db: SQLAlchemy) -> None:
        self._session = db.session

    def _to_domain(self, model: SyncSessionModel) -> SyncSession:
        return SyncSession(
            sync_id=model.sync_id,
            line_user_id=model.line_user_id,
            status=model.status,
            expires_at=model.expires_at,
            created_at=model.created_at,
            completed_at=model.completed_at,
            result=model.result,
        )

    def create(self, line_user_id: str, ttl_seconds: int, now: int) -> SyncSession:
        model = SyncSessionModel(
            sync_id=generate_sync_id(),
            line_user_id=line_user_id,
            status=SessionStatus.PENDING.value,
            created_at=now,
            expires_at=now + ttl_seconds,
        )
        self._session.add(model)
        self._session.flush()
        return self._to_domain(model)

    def get(self, sync_id: str, for_update: bool = False) -> SyncSession | None:
        query = self._session.query(SyncSessionModel).filter_by(sync_id=sync_id)
        if for_update:
            query = query.with_for_update()
        model = query.one_or_none()
        return self._to_domain(model) if model is not None else None

    def close(self, sync_id: str, status: SessionStatus, now: int, result: dict = None) -> bool:
        """Move a pending session to a terminal state. Returns False if it was no longer pending."""
        updated = (
            self._session.query(SyncSessionModel)
            .filter(
                SyncSessionModel.sync_id == sync_id,
                SyncSessionModel.status == SessionStatus.PENDING.value,
            )
            .update(
                {"status": status.value, "completed_at": now, "result": result or {}},
            )
        )
        return updated == 1

    def expire_pending(self, now: int) -> int:
        return (
            self._session.query(SyncSessionModel)
            .filter(
                SyncSessionModel.status == SessionStatus.PENDING.value,
                SyncSessionModel.expires_at < now,
            )
            .update({"status": SessionStatus.EXPIRED.value})
        )
