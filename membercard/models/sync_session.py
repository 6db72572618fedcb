from sqlalchemy import JSON, Column, Integer, String

from membercard.extensions import db


class SyncSessionModel(db.Model):
    __tablename__ = "sync_sessions"

    sync_id = Column(String(255), primary_key=True)
    line_user_id = Column(String(255), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="pending", index=True)
    result = Column(JSON)
    created_at = Column(Integer)
    expires_at = Column(Integer, index=True)
    completed_at = Column(Integer, nullable=True)
