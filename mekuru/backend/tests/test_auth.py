#!/usr/bin/env python3
"""Tests for Supabase bearer-token handling."""
import sys
import time
from pathlib import Path
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

sys.path.insert(0, str(Path(__file__).parent.parent))

import auth

SUPABASE_URL = "https://project-ref.supabase.co"


@pytest.fixture
def signing_key(monkeypatch):
    """Stand in for the project's JWKS with a locally generated ES256 key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    fake_client = SimpleNamespace(
        get_signing_key_from_jwt=lambda token: SimpleNamespace(key=private_key.public_key())
    )
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL + "/")
    monkeypatch.delenv("SUPABASE_JWT_AUD", raising=False)
    monkeypatch.setattr(auth, "_key_client_for", lambda issuer: fake_client)
    return private_key


def _token(private_key, **overrides):
    now = int(time.time())
    claims = {
        "sub": "7d3c0a4e-0000-4000-8000-000000000001",
        "aud": "authenticated",
        "iss": f"{SUPABASE_URL}/auth/v1",
        "iat": now,
        "exp": now + 3600,
        "role": "authenticated",
        "email": "reader@example.com",
        "user_metadata": {"full_name": "Reader"},
    }
    claims.update(overrides)
    return jwt.encode(claims, private_key, algorithm="ES256")


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc.def.ghi", "abc.def.ghi"),
    ("bearer abc", "abc"),
    ("Token abc", None),
    ("Bearer", None),
    ("Bearer a b", None),
    ("", None),
    (None, None),
])
def test_extract_bearer_token(header, expected):
    assert auth.extract_bearer_token(header) == expected


def test_verify_valid_token(signing_key):
    user = auth.verify_bearer_token(_token(signing_key))
    assert user.user_id == "7d3c0a4e-0000-4000-8000-000000000001"
    assert user.email == "reader@example.com"
    assert user.role == "authenticated"
    assert user.user_metadata == {"full_name": "Reader"}
    assert user.is_dev is False


def test_verify_expired_token(signing_key):
    now = int(time.time())
    with pytest.raises(jwt.ExpiredSignatureError):
        auth.verify_bearer_token(_token(signing_key, iat=now - 7200, exp=now - 3600))


def test_verify_wrong_issuer(signing_key):
    with pytest.raises(jwt.InvalidIssuerError):
        auth.verify_bearer_token(_token(signing_key, iss="https://other.supabase.co/auth/v1"))


def test_verify_wrong_audience(signing_key):
    with pytest.raises(jwt.InvalidAudienceError):
        auth.verify_bearer_token(_token(signing_key, aud="anon"))


def test_verify_empty_token():
    with pytest.raises(jwt.InvalidTokenError):
        auth.verify_bearer_token("   ")


def test_missing_supabase_url(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        auth.verify_bearer_token("abc.def.ghi")


def test_email_falls_back_to_metadata():
    user = auth.user_from_claims({"sub": "u1", "user_metadata": {"email": "meta@example.com"}})
    assert user.email == "meta@example.com"


def test_dev_user(monkeypatch):
    monkeypatch.delenv("FLASHCARDS_DEV_USER", raising=False)
    assert auth.get_dev_user() is None
    monkeypatch.setenv("FLASHCARDS_DEV_USER", " local-reader ")
    user = auth.get_dev_user()
    assert user.user_id == "local-reader"
    assert user.is_dev is True
