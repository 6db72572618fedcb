"""
Linking resolver.

Establishes the one-to-one correspondence between a LINE identity and an
external gaming account. Every strategy funnels into the same check-and-link
step, which runs inside a single unit of work:

    1. Lock the identity's active link and the account's active link.
    2. Reject if either side is actively linked to someone else.
    3. Insert or reactivate the (identity, account) link row.
    4. Append an account_link transaction and flag the identity as linked.

Strategies:
    manual - username entered by the user (exact, then fuzzy lookup)
    auto   - display name matched against account holder names
    direct - full account payload pushed by an authenticated client
    socket - deferred; a sync session is opened and completed later
"""

import logging
from enum import Enum

from flask_sqlalchemy import SQLAlchemy

from membercard.domain.accounts import Account, normalize_account_data
from membercard.domain.identity import profile_fields
from membercard.domain.links import Link, LinkMethod
from membercard.domain.messaging import LineMessagingClient, notify
from membercard.domain.sync_sessions import SessionStatus, SyncSession
from membercard.domain.transactions import Transaction, TransactionType
from membercard.errors import (
    AccountAlreadyLinked,
    AccountNotFound,
    Conflict,
    IdentityAlreadyLinked,
    IdentityMismatch,
    IdentityNotFound,
    MemberCardError,
    NoMatch,
    NotFound,
    SessionNotFound,
    ValidationError,
)
from membercard.messages import linked_message
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.identity_repository import SqlAlchemyIdentityRepository
from membercard.models.link_repository import SqlAlchemyLinkRepository
from membercard.models.sync_session_repository import SqlAlchemySyncSessionRepository
from membercard.models.transaction_repository import SqlAlchemyTransactionRepository
from membercard.models.unit_of_work import transaction
from membercard.sessions import DEFAULT_SESSION_TTL_SECONDS, start_session
from membercard.utils.time_utils import now_epoch

log = logging.getLogger("linking")


class LinkStatus(Enum):
    LINKED = "linked"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    PENDING_SESSION = "pending_session"


class LinkResult:
    def __init__(self, status: LinkStatus, account: Account = None, link: Link = None,
                 session: SyncSession = None, error: MemberCardError = None):
        self.status = status
        self.account = account
        self.link = link
        self.session = session
        self.error = error

    @classmethod
    def from_error(cls, error: MemberCardError, session: SyncSession = None) -> "LinkResult":
        status = LinkStatus.CONFLICT if isinstance(error, Conflict) else LinkStatus.NOT_FOUND
        return cls(status, session=session, error=error)

    @property
    def reason(self) -> str | None:
        return self.error.reason if self.error is not None else None

    def to_dict(self) -> dict:
        details = {}
        if self.account is not None:
            details["account"] = self.account.to_dict()
        if self.link is not None:
            details["link"] = self.link.to_dict()
        if self.session is not None:
            details["session"] = self.session.to_dict()
        if self.error is not None:
            details.update(self.error.to_dict())
        return {"status": self.status.value, "details": details}


class _Repositories:
    def __init__(self, db: SQLAlchemy) -> None:
        self.identities = SqlAlchemyIdentityRepository(db)
        self.accounts = SqlAlchemyAccountRepository(db)
        self.links = SqlAlchemyLinkRepository(db)
        self.transactions = SqlAlchemyTransactionRepository(db)
        self.sessions = SqlAlchemySyncSessionRepository(db)


def _parse_strategy(strategy) -> LinkMethod:
    try:
        return strategy if isinstance(strategy, LinkMethod) else LinkMethod(str(strategy).lower())
    except ValueError:
        raise ValidationError(f"Unknown linking strategy: {strategy}", field="strategy")


def _direct_account_fields(payload) -> tuple[str, dict]:
    if not isinstance(payload, dict):
        raise ValidationError("Account payload is required", field="account")
    username = payload.get("username") or payload.get("mm_user")
    if not username or not str(username).strip():
        raise ValidationError("Account payload must include a username", field="account.username")
    return str(username).strip(), normalize_account_data(payload)


def _resolve_manual(repos: _Repositories, username: str) -> Account:
    account = repos.accounts.find_by_username(username)
    if account is None:
        raise AccountNotFound(f"No account matches username '{username}'", username=username)
    return account


def _resolve_auto(repos: _Repositories, line_user_id: str, display_name: str) -> Account:
    candidates = repos.accounts.search_by_display_name(display_name)
    log.info(f"Found {len(candidates)} candidate account(s) for display name '{display_name}'")
    if not candidates:
        raise NoMatch(f"No account matches display name '{display_name}'")

    for candidate in candidates:
        holder = repos.links.get_active_for_account(candidate.username)
        if holder is None or holder.line_user_id == line_user_id:
            return candidate

    raise AccountAlreadyLinked(
        "Every matching account is already linked to another LINE user",
        username=candidates[0].username,
    )


def _commit_link(repos: _Repositories, line_user_id: str, account: Account, method: LinkMethod, now: int) -> Link:
    current = repos.links.get_active_for_identity(line_user_id, for_update=True)
    if current is not None and current.account_username != account.username:
        raise IdentityAlreadyLinked(
            "This LINE user is already linked to another account",
            username=current.account_username,
        )

    holder = repos.links.get_active_for_account(account.username, for_update=True)
    if holder is not None and holder.line_user_id != line_user_id:
        raise AccountAlreadyLinked(
            "This account is already linked to another LINE user",
            username=account.username,
        )

    link = repos.links.activate(line_user_id, account.username, method.value, now)
    repos.transactions.insert(
        Transaction(
            TransactionType.ACCOUNT_LINK.value,
            account_username=account.username,
            line_user_id=line_user_id,
            amount=0.0,
            balance_before=account.available,
            balance_after=account.available,
            description=f"Account linked via {method.value}",
            source=method.value,
            details={"link_method": method.value},
        ),
        now,
    )
    repos.identities.set_link_state(line_user_id, account.username, now)
    return link


def link_account(
    db: SQLAlchemy,
    line_user_id: str,
    strategy,
    args: dict = None,
    notifier: LineMessagingClient = None,
    session_ttl: int = DEFAULT_SESSION_TTL_SECONDS,
    now: int = None,
) -> LinkResult:
    """
    Link a LINE identity to an account using the given strategy.

    Raises ValidationError for malformed input and UpstreamUnavailable when
    storage fails; not-found and conflict outcomes are returned as results.
    """
    args = args or {}
    now = now_epoch() if now is None else now
    method = _parse_strategy(strategy)
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")

    log.info(f"Linking {line_user_id} using the {method.value} strategy")

    if method is LinkMethod.SOCKET:
        session = start_session(db, line_user_id, args.get("profile"), session_ttl, now)
        return LinkResult(LinkStatus.PENDING_SESSION, session=session)

    username = None
    fields = {}
    if method is LinkMethod.MANUAL:
        username = str(args.get("username") or "").strip()
        if not username:
            raise ValidationError("Username is required for manual linking", field="username")
    elif method is LinkMethod.DIRECT:
        username, fields = _direct_account_fields(args.get("account"))

    repos = _Repositories(db)
    try:
        with transaction(db):
            identity = repos.identities.upsert(line_user_id, profile_fields(args.get("profile")), now)

            if method is LinkMethod.MANUAL:
                account = _resolve_manual(repos, username)
            elif method is LinkMethod.AUTO:
                display_name = str(args.get("display_name") or identity.display_name or "").strip()
                if not display_name:
                    raise ValidationError("A display name is required for auto linking", field="display_name")
                account = _resolve_auto(repos, line_user_id, display_name)
            else:
                account = repos.accounts.upsert(username, fields, now)

            link = _commit_link(repos, line_user_id, account, method, now)
    except (NotFound, Conflict) as e:
        log.info(f"Linking {line_user_id} via {method.value} rejected: {e.reason} ({e.message})")
        return LinkResult.from_error(e)

    log.info(f"Linked {line_user_id} to {account.username} via {method.value}")
    notify(notifier, line_user_id, [linked_message(account)])
    return LinkResult(LinkStatus.LINKED, account=account, link=link)


def complete_session(
    db: SQLAlchemy,
    sync_id: str,
    line_user_id: str,
    account_payload: dict,
    notifier: LineMessagingClient = None,
    now: int = None,
) -> LinkResult:
    """
    Finish a deferred link when the account data for a sync session arrives.

    The session must still be pending, unexpired and owned by the committing
    identity; the usual link conflict rules are re-validated before commit.
    """
    now = now_epoch() if now is None else now
    if not sync_id:
        raise ValidationError("Sync id is required", field="sync_id")
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")
    username, fields = _direct_account_fields(account_payload)

    repos = _Repositories(db)
    rejection = None
    with transaction(db):
        session = repos.sessions.get(sync_id, for_update=True)
        if session is None:
            rejection = SessionNotFound(f"Sync session {sync_id} not found", sync_id=sync_id)
        elif not session.is_pending:
            rejection = SessionNotFound(
                f"Sync session {sync_id} is already {session.status}",
                reason="session_closed",
                sync_id=sync_id,
                session_status=session.status,
            )
        elif session.expires_at is not None and session.expires_at < now:
            repos.sessions.close(sync_id, SessionStatus.EXPIRED, now)
            rejection = SessionNotFound(f"Sync session {sync_id} has expired", reason="session_expired", sync_id=sync_id)
        elif session.line_user_id != line_user_id:
            rejection = IdentityMismatch("Sync session belongs to a different LINE user", sync_id=sync_id)
            repos.sessions.close(sync_id, SessionStatus.FAILED, now, {"error": rejection.message, "reason": rejection.reason})

    if rejection is not None:
        log.info(f"Rejected completion of sync session {sync_id}: {rejection.reason}")
        return LinkResult.from_error(rejection)

    try:
        with transaction(db):
            repos.identities.upsert(line_user_id, {}, now)
            account = repos.accounts.upsert(username, fields, now)
            link = _commit_link(repos, line_user_id, account, LinkMethod.SOCKET, now)
            completed = repos.sessions.close(
                sync_id,
                SessionStatus.COMPLETED,
                now,
                {"account": account.to_dict(), "linked_at": now},
            )
            if not completed:
                raise SessionNotFound(f"Sync session {sync_id} was closed concurrently", reason="session_closed", sync_id=sync_id)
    except Conflict as e:
        with transaction(db):
            repos.sessions.close(sync_id, SessionStatus.FAILED, now, {"error": e.message, "reason": e.reason})
        log.info(f"Sync session {sync_id} failed: {e.reason}")
        return LinkResult.from_error(e, session=repos.sessions.get(sync_id))
    except NotFound as e:
        return LinkResult.from_error(e)

    log.info(f"Sync session {sync_id} completed, {line_user_id} linked to {account.username}")
    notify(notifier, line_user_id, [linked_message(account)])
    return LinkResult(LinkStatus.LINKED, account=account, link=link, session=repos.sessions.get(sync_id))


def unlink_account(db: SQLAlchemy, line_user_id: str, now: int = None, deactivate_identity: bool = False) -> Link | None:
    """
    Deactivate the identity's active link; the row is kept for history.

    With deactivate_identity the identity itself is soft-disabled too, as when
    the user blocks the official account.
    """
    now = now_epoch() if now is None else now
    repos = _Repositories(db)
    with transaction(db):
        if repos.identities.get(line_user_id, for_update=True) is None:
            raise IdentityNotFound(f"LINE user {line_user_id} not found", line_user_id=line_user_id)
        link = repos.links.deactivate_for_identity(line_user_id)
        repos.identities.set_link_state(line_user_id, None, now)
        if deactivate_identity:
            repos.identities.disable(line_user_id, now)

    if link is not None:
        log.info(f"Unlinked {line_user_id} from {link.account_username}")
    return link


def check_linking(db: SQLAlchemy, line_user_id: str) -> dict:
    repos = _Repositories(db)
    identity = repos.identities.get(line_user_id)
    if identity is None:
        return {"is_linked": False, "identity": None, "account": None, "link": None}

    link = repos.links.get_active_for_identity(line_user_id)
    if link is None:
        return {"is_linked": False, "identity": identity.to_dict(), "account": None, "link": None}

    account = repos.accounts.get(link.account_username)
    return {
        "is_linked": True,
        "identity": identity.to_dict(),
        "account": account.to_dict() if account is not None else None,
        "link": link.to_dict(),
    }


def search_account(db: SQLAlchemy, line_user_id: str, strategy, username: str = None,
                   display_name: str = None) -> dict:
    """
    Preview the accounts a manual or auto link would consider, without linking.

    Each candidate reports whether it is already linked and whether that link
    belongs to the caller; the other holder is never named. ``match`` is the
    account the same link request would pick, or None.
    """
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")
    method = _parse_strategy(strategy)
    repos = _Repositories(db)

    if method is LinkMethod.MANUAL:
        if not username or not str(username).strip():
            raise ValidationError("Username is required for manual search", field="username")
        found = repos.accounts.find_by_username(str(username).strip())
        candidates = [found] if found is not None else []
    elif method is LinkMethod.AUTO:
        if not display_name:
            identity = repos.identities.get(line_user_id)
            display_name = identity.display_name if identity is not None else None
        if not display_name or not str(display_name).strip():
            raise ValidationError("Display name is required for auto search", field="displayName")
        candidates = repos.accounts.search_by_display_name(str(display_name).strip())
    else:
        raise ValidationError(f"Search is not available for the {method.value} strategy", field="strategy")

    results = []
    match = None
    for candidate in candidates:
        holder = repos.links.get_active_for_account(candidate.username)
        linked_to_you = holder is not None and holder.line_user_id == line_user_id
        if match is None and (holder is None or linked_to_you):
            match = candidate.username
        results.append({
            "username": candidate.username,
            "display_name": candidate.display_name,
            "tier": candidate.tier,
            "is_linked": holder is not None,
            "linked_to_you": linked_to_you,
        })

    log.info(f"Search ({method.value}) for {line_user_id} found {len(results)} candidate(s)")
    return {"account_found": bool(results), "match": match, "candidates": results}


def register_identity(db: SQLAlchemy, line_user_id: str, profile: dict = None, now: int = None):
    """Record (or re-enable) a LINE identity, e.g. when the user adds the official account."""
    if not line_user_id:
        raise ValidationError("LINE user id is required", field="lineUserId")
    now = now_epoch() if now is None else now
    with transaction(db):
        identity = SqlAlchemyIdentityRepository(db).upsert(line_user_id, profile_fields(profile), now)
    log.info(f"Registered LINE user {line_user_id}")
    return identity
