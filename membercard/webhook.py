"""
Ingestion of transaction events pushed by the gaming platform integration.

Callers authenticate with a shared key sent in the X-API-Key header. Events
carry their own transaction_id, so replays of the same event are recorded
once and reported as duplicates afterwards.
"""

import hmac
import logging
import math
from enum import Enum

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.accounts import normalize_account_data
from membercard.domain.transactions import Transaction, TransactionType
from membercard.errors import Conflict, ConfigurationError, Unauthorized, ValidationError
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.link_repository import SqlAlchemyLinkRepository
from membercard.models.transaction_repository import SqlAlchemyTransactionRepository
from membercard.models.unit_of_work import transaction
from membercard.utils.time_utils import now_epoch, parse_timestamp

log = logging.getLogger("webhook")

ACCEPTED_TYPES = (
    TransactionType.USER_LOGIN,
    TransactionType.DEPOSIT,
    TransactionType.WITHDRAWAL,
    TransactionType.DATA_SYNC,
    TransactionType.HEARTBEAT,
    TransactionType.TRANSACTION,
    TransactionType.SYSTEM_EVENT,
    TransactionType.BET,
    TransactionType.WIN,
)
LOG_ONLY_TYPES = (TransactionType.HEARTBEAT, TransactionType.SYSTEM_EVENT)
ACCOUNT_SNAPSHOT_TYPES = (TransactionType.USER_LOGIN, TransactionType.DATA_SYNC)
BALANCE_TYPES = (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class IngestStatus(Enum):
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    LOGGED = "logged"


def authenticate(provided_key: str | None, expected_key: str | None) -> None:
    if not expected_key:
        raise ConfigurationError("Webhook API key is not configured")
    if not provided_key or not hmac.compare_digest(str(provided_key), str(expected_key)):
        log.warning("Rejected webhook call with a missing or invalid API key")
        raise Unauthorized("Invalid API key")


def validate_payload(payload) -> TransactionType:
    if not isinstance(payload, dict):
        raise ValidationError("Transaction data is required")

    errors = []
    if not payload.get("transaction_type"):
        errors.append("transaction_type is required")
    if not payload.get("user_id") and not payload.get("username"):
        errors.append("user_id or username is required")
    if not payload.get("transaction_id"):
        errors.append("transaction_id is required")

    transaction_type = None
    if payload.get("transaction_type"):
        try:
            transaction_type = TransactionType(payload["transaction_type"])
        except ValueError:
            pass
        if transaction_type not in ACCEPTED_TYPES:
            errors.append(f"Invalid transaction_type: {payload['transaction_type']}")

    if errors:
        raise ValidationError(f"Validation failed: {', '.join(errors)}", errors=errors)
    return transaction_type


def _optional_float(payload: dict, key: str):
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid value for {key}: {value!r}", field=key) from e
    if not math.isfinite(number):
        raise ValidationError(f"Invalid value for {key}: {value!r}", field=key)
    return round(number, 2)


def record_external_transaction(
    provided_key: str | None,
    payload: dict,
    expected_key: str | None,
    db: SQLAlchemy,
    now: int = None,
) -> dict:
    authenticate(provided_key, expected_key)
    transaction_type = validate_payload(payload)
    now = now_epoch() if now is None else now

    transaction_id = str(payload["transaction_id"])
    username = str(payload.get("username") or payload.get("user_id")).strip()
    details = payload.get("details") or {}
    if not isinstance(details, dict):
        raise ValidationError("details must be an object", field="details")

    if transaction_type in LOG_ONLY_TYPES:
        log.info(f"Received {transaction_type.value} from {username} ({transaction_id})")
        return {"status": IngestStatus.LOGGED.value, "transaction_id": transaction_id}

    account_fields = {}
    if transaction_type in ACCOUNT_SNAPSHOT_TYPES and details.get("user_data"):
        account_fields = normalize_account_data(details["user_data"])
    amount = _optional_float(payload, "amount") or 0.0
    balance_before = _optional_float(payload, "balance_before")
    balance_after = _optional_float(payload, "balance_after")
    try:
        created_at = parse_timestamp(payload["timestamp"]) if payload.get("timestamp") else now
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {payload['timestamp']!r}", field="timestamp") from e

    accounts = SqlAlchemyAccountRepository(db)
    links = SqlAlchemyLinkRepository(db)
    transactions = SqlAlchemyTransactionRepository(db)

    try:
        with transaction(db):
            if transactions.exists(transaction_id):
                log.info(f"Transaction {transaction_id} already recorded, skipping")
                return {"status": IngestStatus.DUPLICATE.value, "transaction_id": transaction_id}

            if transaction_type in ACCOUNT_SNAPSHOT_TYPES and account_fields:
                account_fields.setdefault("last_login", now)
                accounts.upsert(username, account_fields, now)
                log.info(f"Updated account {username} from {transaction_type.value} event")
            elif transaction_type in BALANCE_TYPES and balance_after is not None:
                if accounts.get(username, for_update=True) is not None:
                    accounts.update_fields(username, {"available": balance_after}, now)
                    log.info(f"Set balance of {username} to {balance_after} from {transaction_type.value} event")
                else:
                    log.warning(f"Balance event for unknown account {username}; recording transaction only")

            link = links.get_active_for_account(username)
            transactions.insert(
                Transaction(
                    transaction_type.value,
                    account_username=username,
                    line_user_id=link.line_user_id if link is not None else None,
                    amount=amount,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    description=payload.get("description"),
                    source=payload.get("source") or "webhook",
                    details=details,
                    transaction_id=transaction_id,
                    created_at=created_at,
                ),
                now,
            )
    except Conflict:
        # Lost the insert race against a retry of the same event
        if transactions.exists(transaction_id):
            return {"status": IngestStatus.DUPLICATE.value, "transaction_id": transaction_id}
        raise

    log.info(f"Recorded {transaction_type.value} {transaction_id} for {username}")
    return {"status": IngestStatus.RECORDED.value, "transaction_id": transaction_id}
