import secrets
from enum import Enum
from time import time


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BET = "bet"
    WIN = "win"
    ACCOUNT_LINK = "account_link"
    DATA_SYNC = "data_sync"
    HEARTBEAT = "heartbeat"
    USER_LOGIN = "user_login"
    TRANSACTION = "transaction"
    SYSTEM_EVENT = "system_event"


def generate_transaction_id(prefix: str = "txn") -> str:
    return f"{prefix}_{int(time() * 1000)}_{secrets.token_hex(4)}"


class Transaction:
    def __init__(
        self,
        transaction_type,
        account_username=None,
        line_user_id=None,
        amount: float = 0.0,
        balance_before=None,
        balance_after=None,
        description=None,
        source=None,
        details=None,
        transaction_id=None,
        created_at=None,
    ):
        self.transaction_id = transaction_id or generate_transaction_id()
        self.transaction_type = transaction_type
        self.account_username = account_username
        self.line_user_id = line_user_id
        self.amount = amount or 0.0
        self.balance_before = balance_before
        self.balance_after = balance_after
        self.description = description
        self.source = source
        self.details = details or {}
        self.created_at = created_at

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_type": self.transaction_type,
            "account_username": self.account_username,
            "line_user_id": self.line_user_id,
            "amount": self.amount,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "description": self.description,
            "source": self.source,
            "details": self.details,
            "created_at": self.created_at,
        }
