"""
Sync reconciler.

Merges freshly observed account data for a linked identity into the stored
account:

    1. Skip (cached) when the account was refreshed within the freshness
       window, unless forced.
    2. Overwrite only the fields that were observed with a non-null value.
       An observed username must name the linked account and is never merged.
    3. Derive a deposit or withdrawal transaction from a balance delta of at
       least 0.01.
    4. Always append a data_sync audit transaction holding the raw payload.
    5. Stamp account.updated_at and identity.last_sync_at.

Steps 2 to 5 run in one unit of work; a failure leaves nothing behind.
"""

import logging
from decimal import Decimal
from enum import Enum

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.accounts import Account, normalize_account_data
from membercard.domain.messaging import LineMessagingClient, notify
from membercard.domain.transactions import Transaction, TransactionType
from membercard.errors import IdentityNotFound, NotLinkedError, UpstreamUnavailable, ValidationError
from membercard.messages import balance_change_message
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.identity_repository import SqlAlchemyIdentityRepository
from membercard.models.link_repository import SqlAlchemyLinkRepository
from membercard.models.transaction_repository import SqlAlchemyTransactionRepository
from membercard.models.unit_of_work import transaction
from membercard.utils.time_utils import now_epoch

log = logging.getLogger("sync")

DEFAULT_FRESHNESS_SECONDS = 300
BALANCE_DELTA_THRESHOLD = Decimal("0.01")


class SyncStatus(Enum):
    UPDATED = "updated"
    CACHED = "cached"


class SyncResult:
    def __init__(self, status: SyncStatus, account: Account, changed_fields: list[str] = None,
                 transaction: Transaction = None):
        self.status = status
        self.account = account
        self.changed_fields = changed_fields or []
        self.transaction = transaction

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "changed_fields": self.changed_fields,
            "account": self.account.to_dict(),
            "transaction": self.transaction.to_dict() if self.transaction is not None else None,
        }


def balance_delta(before, after) -> Decimal:
    # Compare as decimals so float noise never crosses the threshold
    return Decimal(str(after or 0)) - Decimal(str(before or 0))


def _check_observed_identity(account: Account, observed_names: list[str]):
    """Observed data may only describe the linked account, never rename it."""
    known = {account.username.lower()}
    if account.mm_user:
        known.add(account.mm_user.lower())
    for name in observed_names:
        if name.lower() not in known:
            raise ValidationError(
                f"Observed account {name} does not match linked account {account.username}",
                reason="account_mismatch",
                field="mm_user",
            )


def _balance_transaction(account: Account, line_user_id: str, new_balance: float, delta: Decimal,
                         source: str) -> Transaction:
    transaction_type = TransactionType.DEPOSIT if delta > 0 else TransactionType.WITHDRAWAL
    return Transaction(
        transaction_type.value,
        account_username=account.username,
        line_user_id=line_user_id,
        amount=float(abs(delta)),
        balance_before=account.available,
        balance_after=new_balance,
        description=f"Balance {'increased' if delta > 0 else 'decreased'} by {abs(delta)}",
        source=source,
        details={"detected_by": "sync"},
    )


def sync_account(
    db: SQLAlchemy,
    line_user_id: str,
    observed: dict,
    force: bool = False,
    notifier: LineMessagingClient = None,
    freshness_seconds: int = DEFAULT_FRESHNESS_SECONDS,
    source: str = "sync",
    now: int = None,
) -> SyncResult:
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")
    observed = observed if observed is not None else {}
    fields = normalize_account_data(observed)
    observed_names = [
        str(name).strip() for name in (observed.get("username"), fields.get("mm_user")) if name and str(name).strip()
    ]
    now = now_epoch() if now is None else now

    identities = SqlAlchemyIdentityRepository(db)
    accounts = SqlAlchemyAccountRepository(db)
    links = SqlAlchemyLinkRepository(db)
    transactions = SqlAlchemyTransactionRepository(db)

    with transaction(db):
        if identities.get(line_user_id, for_update=True) is None:
            raise IdentityNotFound(f"LINE user {line_user_id} not found", line_user_id=line_user_id)
        link = links.get_active_for_identity(line_user_id)
        if link is None:
            raise NotLinkedError(f"LINE user {line_user_id} has no linked account", line_user_id=line_user_id)

        account = accounts.get(link.account_username, for_update=True)
        if account is None:
            raise UpstreamUnavailable(f"Linked account {link.account_username} is missing")
        _check_observed_identity(account, observed_names)
        fields.pop("mm_user", None)

        if not force and account.updated_at is not None and now - account.updated_at < freshness_seconds:
            log.info(
                f"Account {account.username} refreshed {now - account.updated_at}s ago; "
                f"returning cached data for {line_user_id}"
            )
            return SyncResult(SyncStatus.CACHED, account)

        log.info(f"Reconciling {len(fields)} observed field(s) for {account.username}")

        balance_transaction = None
        derived = {}
        if "available" in fields:
            delta = balance_delta(account.available, fields["available"])
            if abs(delta) >= BALANCE_DELTA_THRESHOLD:
                balance_transaction = _balance_transaction(account, line_user_id, fields["available"], delta, source)
                if "total_transactions" not in fields:
                    derived["total_transactions"] = (account.total_transactions or 0) + 1
                if delta > 0:
                    derived["total_deposits"] = round((account.total_deposits or 0.0) + float(delta), 2)
                else:
                    derived["total_withdrawals"] = round((account.total_withdrawals or 0.0) + float(-delta), 2)
                log.info(
                    f"Balance of {account.username} moved from {account.available} to {fields['available']}; "
                    f"recording {balance_transaction.transaction_type} of {balance_transaction.amount}"
                )
            else:
                log.debug(f"Balance delta {delta} for {account.username} is below threshold")

        changed_fields = accounts.update_fields(account.username, fields, now)
        if derived:
            accounts.update_fields(account.username, derived, now)

        if balance_transaction is not None:
            transactions.insert(balance_transaction, now)
        transactions.insert(
            Transaction(
                TransactionType.DATA_SYNC.value,
                account_username=account.username,
                line_user_id=line_user_id,
                amount=0.0,
                balance_before=account.available,
                balance_after=fields.get("available", account.available),
                description="Account data synchronised",
                source=source,
                details={"observed": observed, "changed_fields": changed_fields, "forced": force},
            ),
            now,
        )
        identities.touch_last_sync(line_user_id, now)
        account = accounts.get(account.username)

    log.info(f"Sync for {line_user_id} updated {account.username}; changed fields: {changed_fields}")
    if balance_transaction is not None:
        notify(notifier, line_user_id, [balance_change_message(balance_transaction)])
    return SyncResult(SyncStatus.UPDATED, account, changed_fields, balance_transaction)
