import logging
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import IntegrityError

from membercard.errors import (
    AccountAlreadyLinked,
    Conflict,
    IdentityAlreadyLinked,
    MemberCardError,
    UpstreamUnavailable,
)

log = logging.getLogger("unit_of_work")

# PostgreSQL names the violated index, SQLite names its columns
ACTIVE_LINK_CONSTRAINTS = (
    (("uq_account_links_active_identity", "account_links.line_user_id"), IdentityAlreadyLinked,
     "This LINE account is already linked to a gaming account"),
    (("uq_account_links_active_account", "account_links.account_username"), AccountAlreadyLinked,
     "This gaming account is already linked to another LINE account"),
)


def conflict_for(error: IntegrityError) -> Conflict:
    message = str(error.orig)
    # The pair constraint covers both columns and is not about active links
    if "uq_account_links_pair" in message or (
        "account_links.line_user_id" in message and "account_links.account_username" in message
    ):
        return Conflict("A concurrent change conflicts with this request", reason="concurrent_modification")
    for markers, error_class, text in ACTIVE_LINK_CONSTRAINTS:
        if any(marker in message for marker in markers):
            return error_class(text)
    return Conflict("A concurrent change conflicts with this request", reason="concurrent_modification")


@contextmanager
def transaction(db: SQLAlchemy):
    """
    Run a check-and-mutate sequence as one database transaction.

    Commits once on success. Any exception rolls everything back: domain
    errors are re-raised unchanged, a uniqueness violation becomes a
    Conflict, anything else surfaces as UpstreamUnavailable.

    A lost race on the active link indexes is reported the same way the
    up-front checks report it, as IdentityAlreadyLinked or
    AccountAlreadyLinked.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except MemberCardError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        log.warning(f"Uniqueness constraint violated, rolled back: {e.orig}")
        raise conflict_for(e) from e
    except Exception as e:
        session.rollback()
        log.error("Storage operation failed, rolled back", exc_info=e)
        raise UpstreamUnavailable("Storage is currently unavailable") from e
