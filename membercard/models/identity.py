from sqlalchemy import Boolean, Column, Integer, String, Text

from membercard.extensions import db


class IdentityModel(db.Model):
    __tablename__ = "identities"

    line_user_id = Column(String(255), primary_key=True)
    display_name = Column(String(255))
    picture_url = Column(Text)
    status_message = Column(Text)
    language = Column(String(10), default="th")
    is_linked = Column(Boolean, nullable=False, default=False)
    account_username = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_sync_at = Column(Integer, nullable=True)
    created_at = Column(Integer)
    updated_at = Column(Integer)
