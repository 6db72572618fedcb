import base64
import hashlib
import hmac

import pytest

from membercard.errors import (
    AccountAlreadyLinked,
    ConfigurationError,
    IdentityNotFound,
    MemberCardError,
    NotLinkedError,
    Unauthorized,
    UpstreamUnavailable,
    ValidationError,
)
from membercard.web import status_for
from membercard.web.line import command_for, verify_signature


@pytest.mark.parametrize(
    "error, status",
    [
        (ValidationError("bad"), 400),
        (Unauthorized("no"), 401),
        (IdentityNotFound("missing"), 404),
        (NotLinkedError("not linked"), 200),
        (AccountAlreadyLinked("taken"), 409),
        (UpstreamUnavailable("down"), 503),
        (ConfigurationError("unset"), 500),
        (MemberCardError("other"), 500),
    ],
)
def test_status_for(error, status):
    assert status_for(error) == status


def test_error_to_dict_carries_reason_and_details():
    error = AccountAlreadyLinked("taken", username="demo_user")

    assert error.to_dict() == {
        "error": "conflict",
        "message": "taken",
        "username": "demo_user",
        "reason": "account_already_linked",
    }


@pytest.mark.parametrize(
    "text, command",
    [
        ("Balance", "balance"),
        ("ดูบัตร", "balance"),
        ("my card", "balance"),
        ("เชื่อมบัญชี", "link"),
        ("link", "link"),
        ("HELP", "help"),
        ("สวัสดี", "help"),
        (None, "help"),
    ],
)
def test_command_for(text, command):
    assert command_for(text) == command


def test_verify_signature_accepts_valid_signature():
    body = b'{"events": []}'
    signature = base64.b64encode(hmac.new(b"secret", body, hashlib.sha256).digest()).decode()

    verify_signature(body, signature, "secret")


def test_verify_signature_rejects_tampered_body():
    signature = base64.b64encode(hmac.new(b"secret", b"original", hashlib.sha256).digest()).decode()

    with pytest.raises(Unauthorized):
        verify_signature(b"tampered", signature, "secret")


def test_verify_signature_requires_secret():
    with pytest.raises(ConfigurationError):
        verify_signature(b"{}", "sig", "")
