import logging

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.accounts import TIER_BANDS, Tier
from membercard.errors import NotLinkedError, ValidationError
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.identity_repository import SqlAlchemyIdentityRepository
from membercard.models.link_repository import SqlAlchemyLinkRepository
from membercard.models.transaction_repository import SqlAlchemyTransactionRepository
from membercard.utils.formatting import format_currency, format_points, relative_time, round_half_up
from membercard.utils.time_utils import now_epoch, parse_timestamp

log = logging.getLogger("presentation")

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


def tier_progress(tier, points) -> dict:
    """Progress through the current tier band; unknown tiers count as Bronze."""
    try:
        current = Tier.parse(tier)
    except ValidationError:
        current = Tier.BRONZE
    points = int(points or 0)
    band_min, band_max, next_tier = TIER_BANDS[current]

    progress = (points - band_min) / (band_max - band_min)
    progress = min(max(progress, 0.0), 1.0)

    return {
        "current_tier": current.value,
        "current_points": points,
        "progress_percentage": round_half_up(progress * 100),
        "points_needed_for_next": max(band_max - points, 0) if next_tier else 0,
        "next_tier": next_tier.value if next_tier else None,
        "tier_min_points": band_min,
        "tier_max_points": band_max,
    }


class PresentationView:
    def __init__(self, identity, account, link, transactions, now: int):
        self.identity = identity
        self.account = account
        self.link = link
        self.transactions = transactions
        self.now = now

    @property
    def tier_progress(self) -> dict:
        return tier_progress(self.account.tier, self.account.points)

    def to_dict(self) -> dict:
        account = self.account
        return {
            "user": {
                "line_user_id": self.identity.line_user_id,
                "display_name": self.identity.display_name,
                "account_username": account.username,
                "linked_at": self.link.linked_at,
                "link_method": self.link.link_method,
            },
            "balance": {
                "available": float(account.available or 0),
                "credit_limit": float(account.credit_limit or 0),
                "bet_credit": float(account.bet_credit or 0),
                "total_deposits": float(account.total_deposits or 0),
                "total_withdrawals": float(account.total_withdrawals or 0),
                "total_transactions": int(account.total_transactions or 0),
                "tier": account.tier or Tier.BRONZE.value,
                "points": int(account.points or 0),
                "last_updated": account.updated_at,
            },
            "tier_progress": self.tier_progress,
            "recent_transactions": [t.to_dict() for t in self.transactions],
            "display": {
                "balance_formatted": format_currency(account.available),
                "credit_formatted": format_currency(account.credit_limit),
                "points_formatted": format_points(account.points),
                "display_name": account.display_name,
                "last_sync_relative": relative_time(self.identity.last_sync_at or account.updated_at, self.now),
            },
        }


def present(db: SQLAlchemy, line_user_id: str, limit: int = DEFAULT_PAGE_SIZE, now: int = None) -> PresentationView:
    now = now_epoch() if now is None else now
    identity = SqlAlchemyIdentityRepository(db).get(line_user_id)
    link = SqlAlchemyLinkRepository(db).get_active_for_identity(line_user_id) if identity else None
    account = SqlAlchemyAccountRepository(db).get(link.account_username) if link else None
    if account is None:
        raise NotLinkedError(f"LINE user {line_user_id} has no linked account", line_user_id=line_user_id)

    limit = min(max(int(limit), 1), MAX_PAGE_SIZE)
    # Only rows of the currently linked account
    transactions = SqlAlchemyTransactionRepository(db).find(limit=limit, account_username=account.username)
    log.info(f"Presenting {account.username} for {line_user_id} with {len(transactions)} transaction(s)")
    return PresentationView(identity, account, link, transactions, now)


def list_transactions(
    db: SQLAlchemy,
    line_user_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    transaction_type: str = None,
    date_from=None,
    date_to=None,
) -> dict:
    link = SqlAlchemyLinkRepository(db).get_active_for_identity(line_user_id)
    if link is None:
        raise NotLinkedError(f"LINE user {line_user_id} has no linked account", line_user_id=line_user_id)

    try:
        limit = int(limit)
        offset = max(int(offset), 0)
        date_from = parse_timestamp(date_from) if date_from else None
        date_to = parse_timestamp(date_to) if date_to else None
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid pagination or date filter: {e}") from e
    if limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE
    if limit < 1:
        limit = DEFAULT_PAGE_SIZE

    filters = {
        "account_username": link.account_username,
        "transaction_type": transaction_type,
        "date_from": date_from,
        "date_to": date_to,
    }
    repository = SqlAlchemyTransactionRepository(db)
    transactions = repository.find(limit=limit, offset=offset, **filters)
    total = repository.count(**filters)
    return {
        "transactions": [t.to_dict() for t in transactions],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }
