from sqlalchemy import JSON, Column, Float, Integer, String, Text

from membercard.extensions import db


class TransactionModel(db.Model):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(String(255), nullable=False, unique=True)
    line_user_id = Column(String(255), nullable=True, index=True)
    account_username = Column(String(255), nullable=True, index=True)
    transaction_type = Column(String(50), nullable=False, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    balance_before = Column(Float, nullable=True)
    balance_after = Column(Float, nullable=True)
    description = Column(Text)
    source = Column(String(100))
    details = Column(JSON)
    created_at = Column(Integer, index=True)
