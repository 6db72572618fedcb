import pytest

from membercard.domain.accounts import Account, Tier, normalize_account_data
from membercard.errors import ValidationError


def test_tier_parse_is_case_insensitive():
    assert Tier.parse("gold") is Tier.GOLD
    assert Tier.parse(" Platinum ") is Tier.PLATINUM
    assert Tier.parse(Tier.SILVER) is Tier.SILVER


def test_tier_parse_rejects_unknown_tier():
    with pytest.raises(ValidationError) as e:
        Tier.parse("Mythril")
    assert e.value.details["field"] == "tier"


def test_tier_rank_is_ordered():
    assert [t.rank for t in Tier] == [0, 1, 2, 3, 4]
    assert Tier.DIAMOND.rank > Tier.BRONZE.rank


def test_normalize_drops_nulls_and_unknown_keys():
    fields = normalize_account_data({"available": None, "favourite_colour": "blue", "first_name": " Somchai "})
    assert fields == {"first_name": "Somchai"}


def test_normalize_coerces_numbers():
    fields = normalize_account_data(
        {"available": "25,680.50", "points": "1200", "credit_limit": 5000, "tier": "silver"}
    )
    assert fields == {"available": 25680.5, "points": 1200, "credit_limit": 5000.0, "tier": "Silver"}


def test_normalize_keeps_sub_cent_precision():
    assert normalize_account_data({"available": 100.009})["available"] == 100.009


def test_normalize_maps_aliases():
    fields = normalize_account_data({"phone": "0812345678", "balance": "10.5", "registerTime": 1700000000})
    assert fields == {"tel": "0812345678", "available": 10.5, "register_time": 1700000000}


def test_normalize_prefers_canonical_key_over_alias():
    fields = normalize_account_data({"balance": 1.0, "available": 2.0})
    assert fields == {"available": 2.0}


def test_normalize_parses_timestamps():
    fields = normalize_account_data({"last_login": "2023-11-14T22:13:20Z", "registerTime": 1700000000000})
    assert fields == {"last_login": 1700000000, "register_time": 1700000000}


@pytest.mark.parametrize(
    "data",
    [
        {"available": "lots"},
        {"points": "many"},
        {"tier": "Mythril"},
        {"last_login": "yesterday"},
    ],
)
def test_normalize_rejects_malformed_values(data):
    with pytest.raises(ValidationError):
        normalize_account_data(data)


@pytest.mark.parametrize(
    "field, value",
    [
        ("available", "NaN"),
        ("available", "Infinity"),
        ("credit_limit", float("-inf")),
        ("balance", float("nan")),
        ("points", "inf"),
        ("total_transactions", float("nan")),
        ("last_login", float("inf")),
        ("register_time", 10**400),
    ],
)
def test_normalize_rejects_non_finite_values(field, value):
    with pytest.raises(ValidationError) as e:
        normalize_account_data({field: value})

    assert e.value.details["field"] == {"balance": "available"}.get(field, field)


def test_normalize_rejects_non_object():
    with pytest.raises(ValidationError):
        normalize_account_data(["available", 10])


def test_account_defaults():
    account = Account("demo_user")
    assert account.available == 0.0
    assert account.tier == "Bronze"
    assert account.points == 0
    assert account.total_transactions == 0


def test_account_display_name():
    assert Account("demo_user", first_name="Somchai", last_name="Jaidee").display_name == "Somchai Jaidee"
    assert Account("demo_user", first_name="Somchai").display_name == "Somchai"
    assert Account("demo_user").display_name == "demo_user"


def test_account_to_dict():
    account = Account("demo_user", available=10.5, tier="Gold", points=12000)
    as_dict = account.to_dict()
    assert as_dict["username"] == "demo_user"
    assert as_dict["available"] == 10.5
    assert as_dict["tier"] == "Gold"
    assert as_dict["points"] == 12000
