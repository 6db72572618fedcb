import pytest
from sqlalchemy.exc import IntegrityError

from membercard.domain.transactions import Transaction
from membercard.errors import AccountAlreadyLinked, Conflict, IdentityAlreadyLinked
from membercard.models.account_repository import SqlAlchemyAccountRepository
from membercard.models.link import LinkModel
from membercard.models.link_repository import SqlAlchemyLinkRepository
from membercard.models.sync_session_repository import SqlAlchemySyncSessionRepository
from membercard.models.transaction_repository import SqlAlchemyTransactionRepository
from membercard.models.unit_of_work import conflict_for, transaction
from membercard.domain.sync_sessions import SessionStatus


def test_account_upsert_only_overwrites_supplied_fields(db, seed_account, now):
    seed_account("demo_user", first_name="Somchai", available=10.0)
    repository = SqlAlchemyAccountRepository(db)

    account = repository.upsert("demo_user", {"available": 20.0}, now)

    assert account.available == 20.0
    assert account.first_name == "Somchai"
    assert account.updated_at == now


def test_account_update_fields_reports_changes(db, seed_account, now):
    seed_account("demo_user", available=10.0, tier="Gold")
    repository = SqlAlchemyAccountRepository(db)

    changed = repository.update_fields("demo_user", {"available": 20.0, "tier": "Gold"}, now)

    assert changed == ["available"]


def test_find_by_username_prefers_exact_match(db, seed_account):
    seed_account("demo_user_2", updated_at=2000)
    seed_account("demo_user", updated_at=1000)
    repository = SqlAlchemyAccountRepository(db)

    assert repository.find_by_username("DEMO_USER").username == "demo_user"
    assert repository.find_by_username("user_2").username == "demo_user_2"
    assert repository.find_by_username("nobody") is None


def test_find_by_username_escapes_wildcards(db, seed_account):
    seed_account("demo_user")
    repository = SqlAlchemyAccountRepository(db)

    assert repository.find_by_username("%") is None


def test_search_by_display_name_ranks_exact_matches_first(db, seed_account):
    seed_account("partial", first_name="Somchai", last_name="Jaideeyai", last_login=3000)
    seed_account("exact", first_name="Somchai", last_name="Jaidee", last_login=1000)
    repository = SqlAlchemyAccountRepository(db)

    candidates = repository.search_by_display_name("Somchai Jaidee")

    assert [c.username for c in candidates] == ["exact", "partial"]


def test_search_by_display_name_orders_ties_by_recent_activity(db, seed_account):
    seed_account("older", first_name="Somchai", last_login=1000)
    seed_account("newer", first_name="Somchai", last_login=2000)
    repository = SqlAlchemyAccountRepository(db)

    assert [c.username for c in repository.search_by_display_name("somchai")] == ["newer", "older"]


def test_link_activate_reuses_existing_row(db, seed_identity, seed_account, now):
    seed_identity("U123")
    seed_account("demo_user")
    repository = SqlAlchemyLinkRepository(db)

    first = repository.activate("U123", "demo_user", "manual", now)
    repository.deactivate_for_identity("U123")
    second = repository.activate("U123", "demo_user", "auto", now + 1)

    assert first.id == second.id
    assert second.link_method == "auto"
    assert len(repository.history("U123")) == 1


def test_second_active_link_for_identity_violates_index(db, seed_identity, seed_account, now):
    seed_identity("U123")
    seed_account("account_a")
    seed_account("account_b")
    db.session.add(LinkModel(line_user_id="U123", account_username="account_a", link_method="manual", is_active=True))
    db.session.commit()

    db.session.add(LinkModel(line_user_id="U123", account_username="account_b", link_method="manual", is_active=True))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_inactive_links_do_not_count_against_index(db, seed_identity, seed_account):
    seed_identity("U123")
    seed_account("account_a")
    seed_account("account_b")
    db.session.add(LinkModel(line_user_id="U123", account_username="account_a", link_method="manual", is_active=False))
    db.session.add(LinkModel(line_user_id="U123", account_username="account_b", link_method="manual", is_active=True))
    db.session.commit()

    assert SqlAlchemyLinkRepository(db).get_active_for_identity("U123").account_username == "account_b"


def test_unit_of_work_surfaces_lost_account_race_as_account_conflict(db, seed_identity, seed_account):
    seed_identity("U1")
    seed_identity("U2")
    seed_account("demo_user")
    db.session.add(LinkModel(line_user_id="U1", account_username="demo_user", link_method="manual", is_active=True))
    db.session.commit()

    with pytest.raises(Conflict) as e:
        with transaction(db) as session:
            session.add(LinkModel(line_user_id="U2", account_username="demo_user", link_method="manual", is_active=True))

    assert isinstance(e.value, AccountAlreadyLinked)
    assert e.value.reason == "account_already_linked"
    assert "U1" not in e.value.message
    assert SqlAlchemyLinkRepository(db).get_active_for_account("demo_user").line_user_id == "U1"


def test_unit_of_work_surfaces_lost_identity_race_as_identity_conflict(db, seed_identity, seed_account):
    seed_identity("U1")
    seed_account("account_a")
    seed_account("account_b")
    db.session.add(LinkModel(line_user_id="U1", account_username="account_a", link_method="manual", is_active=True))
    db.session.commit()

    with pytest.raises(IdentityAlreadyLinked) as e:
        with transaction(db) as session:
            session.add(LinkModel(line_user_id="U1", account_username="account_b", link_method="manual", is_active=True))

    assert e.value.reason == "identity_already_linked"
    assert SqlAlchemyLinkRepository(db).get_active_for_identity("U1").account_username == "account_a"


def test_unit_of_work_duplicate_pair_is_a_plain_conflict(db, seed_identity, seed_account):
    seed_identity("U1")
    seed_account("demo_user")
    db.session.add(LinkModel(line_user_id="U1", account_username="demo_user", link_method="manual", is_active=True))
    db.session.commit()

    with pytest.raises(Conflict) as e:
        with transaction(db) as session:
            session.add(LinkModel(line_user_id="U1", account_username="demo_user", link_method="auto", is_active=False))

    assert e.value.reason == "concurrent_modification"


@pytest.mark.parametrize(
    "message, reason",
    [
        ('duplicate key value violates unique constraint "uq_account_links_active_identity"', "identity_already_linked"),
        ('duplicate key value violates unique constraint "uq_account_links_active_account"', "account_already_linked"),
        ('duplicate key value violates unique constraint "uq_account_links_pair"', "concurrent_modification"),
        ("UNIQUE constraint failed: identities.line_user_id", "concurrent_modification"),
    ],
)
def test_conflict_for_maps_constraint_names(message, reason):
    error = IntegrityError("INSERT INTO account_links ...", {}, Exception(message))

    assert conflict_for(error).reason == reason


def test_transaction_find_and_count(db, now):
    repository = SqlAlchemyTransactionRepository(db)
    for i, transaction_type in enumerate(["deposit", "withdrawal", "data_sync"]):
        repository.insert(
            Transaction(transaction_type, account_username="demo_user", line_user_id="U123"),
            now + i,
        )
    repository.insert(Transaction("deposit", account_username="someone_else"), now)
    db.session.commit()

    found = repository.find(limit=10, line_user_id="U123", account_username="demo_user")
    assert [t.transaction_type for t in found] == ["data_sync", "withdrawal", "deposit"]
    assert repository.count(line_user_id="U123", transaction_type="deposit") == 1
    assert repository.count(date_from=now + 1, date_to=now + 2) == 2


def test_sync_session_close_only_applies_to_pending(db, now):
    repository = SqlAlchemySyncSessionRepository(db)
    session = repository.create("U123", 600, now)

    assert repository.close(session.sync_id, SessionStatus.COMPLETED, now + 1) is True
    assert repository.close(session.sync_id, SessionStatus.FAILED, now + 2) is False
    assert repository.get(session.sync_id).status == "completed"


def test_sync_session_expire_pending(db, now):
    repository = SqlAlchemySyncSessionRepository(db)
    stale = repository.create("U1", 600, now)
    fresh = repository.create("U2", 600, now + 500)

    assert repository.expire_pending(now + 660) == 1
    assert repository.get(stale.sync_id).status == "expired"
    assert repository.get(fresh.sync_id).status == "pending"
