import secrets
from enum import Enum
from time import time


class SessionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    result = ""
    while number:
        number, remainder = divmod(number, 36)
        result = digits[remainder] + result
    return result or "0"


def generate_sync_id() -> str:
    return f"sync_{_base36(int(time() * 1000))}_{secrets.token_hex(8)}"


class SyncSession:
    def __init__(self, sync_id, line_user_id, status=SessionStatus.PENDING.value, expires_at=None,
                 created_at=None, completed_at=None, result=None):
        self.sync_id = sync_id
        self.line_user_id = line_user_id
        self.status = status
        self.expires_at = expires_at
        self.created_at = created_at
        self.completed_at = completed_at
        self.result = result or {}

    @property
    def is_pending(self) -> bool:
        return self.status == SessionStatus.PENDING.value

    def is_expired(self, now: int) -> bool:
        # Returns True once the expiry has passed, even if the sweep has not run yet.
        return self.status == SessionStatus.EXPIRED.value or (
            self.is_pending and self.expires_at is not None and self.expires_at < now
        )

    def to_dict(self, now: int = None) -> dict:
        now = int(time()) if now is None else now
        return {
            "sync_id": self.sync_id,
            "line_user_id": self.line_user_id,
            "status": self.status,
            "expires_at": self.expires_at,
            "remaining_seconds": max(self.expires_at - now, 0) if self.is_pending and self.expires_at else 0,
            "completed_at": self.completed_at,
            "result": self.result,
        }
