from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, UniqueConstraint, text

from membercard.extensions import db


class LinkModel(db.Model):
    __tablename__ = "account_links"
    __table_args__ = (
        UniqueConstraint("line_user_id", "account_username", name="uq_account_links_pair"),
        # At most one active link per identity and per account
        Index(
            "uq_account_links_active_identity",
            "line_user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index(
            "uq_account_links_active_account",
            "account_username",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True)
    line_user_id = Column(String(255), ForeignKey("identities.line_user_id"), nullable=False)
    account_username = Column(String(255), ForeignKey("accounts.username"), nullable=False)
    link_method = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    linked_at = Column(Integer)
