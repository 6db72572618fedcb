from membercard.domain.identity import Identity, profile_fields
from membercard.domain.links import Link, LinkMethod


def test_profile_fields_maps_line_profile_keys():
    profile = {
        "userId": "U123",
        "displayName": "Somchai",
        "pictureUrl": "https://profile.line-scdn.net/abc",
        "statusMessage": None,
    }
    assert profile_fields(profile) == {
        "display_name": "Somchai",
        "picture_url": "https://profile.line-scdn.net/abc",
    }


def test_profile_fields_accepts_snake_case_and_empty():
    assert profile_fields({"display_name": "Somchai"}) == {"display_name": "Somchai"}
    assert profile_fields(None) == {}


def test_identity_defaults():
    identity = Identity("U123")
    assert identity.language == "th"
    assert identity.is_linked is False
    assert identity.is_active is True
    assert identity.to_dict()["account_username"] is None


def test_link_to_dict():
    link = Link("U123", "demo_user", LinkMethod.MANUAL.value, linked_at=1700000000)
    assert link.to_dict() == {
        "line_user_id": "U123",
        "account_username": "demo_user",
        "link_method": "manual",
        "is_active": True,
        "linked_at": 1700000000,
    }
