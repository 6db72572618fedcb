from sqlalchemy import Boolean, Column, Float, Integer, String

from membercard.extensions import db


class AccountModel(db.Model):
    __tablename__ = "accounts"

    username = Column(String(255), primary_key=True)
    mm_user = Column(String(255), index=True)
    acc_no = Column(String(255))
    bank_id = Column(String(50))
    bank_name = Column(String(255))
    first_name = Column(String(255))
    last_name = Column(String(255))
    tel = Column(String(50))
    email = Column(String(255))
    available = Column(Float, nullable=False, default=0.0)
    credit_limit = Column(Float, nullable=False, default=0.0)
    bet_credit = Column(Float, nullable=False, default=0.0)
    tier = Column(String(50), nullable=False, default="Bronze")
    points = Column(Integer, nullable=False, default=0)
    total_transactions = Column(Integer, nullable=False, default=0)
    total_deposits = Column(Float, nullable=True, default=0.0)
    total_withdrawals = Column(Float, nullable=True, default=0.0)
    member_ref = Column(String(255))
    register_time = Column(Integer, nullable=True)
    last_login = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Integer)
    updated_at = Column(Integer)
