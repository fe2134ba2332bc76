"""
Who is studying: resolve the signed-in reader from a request.

The reading companion signs users in with Supabase in the browser; each API
call carries the access token as `Authorization: Bearer <jwt>`. This module
checks the token's signature against the project's published keys and turns
its claims into an AuthenticatedUser, whose user_id is what scopes books,
vocab and study sessions.
"""

import os
from dataclasses import dataclass
from typing import Any

import jwt
from jwt import PyJWKClient

# Claims a Supabase access token must carry before we trust its `sub`
REQUIRED_CLAIMS = ["exp", "iat", "sub", "aud", "iss"]
# ES256 or RS256, depending on the project's signing key
ACCEPTED_ALGORITHMS = ["ES256", "RS256"]


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: str | None = None
    role: str | None = None
    user_metadata: dict[str, Any] | None = None
    is_dev: bool = False


_key_clients: dict[str, PyJWKClient] = {}


def _project_issuer() -> str:
    project_url = os.getenv("SUPABASE_URL", "").strip().rstrip("/")
    if not project_url:
        raise RuntimeError("SUPABASE_URL is not set")
    return f"{project_url}/auth/v1"


def _key_client_for(issuer: str) -> PyJWKClient:
    """One cached JWKS client per issuer; PyJWKClient caches the keys it fetches."""
    client = _key_clients.get(issuer)
    if client is None:
        client = PyJWKClient(f"{issuer}/.well-known/jwks.json")
        _key_clients[issuer] = client
    return client


def user_from_claims(claims: dict[str, Any]) -> AuthenticatedUser:
    metadata = claims.get("user_metadata") or None
    email = claims.get("email") or (metadata or {}).get("email") or None
    return AuthenticatedUser(
        user_id=str(claims.get("sub")),
        email=email,
        role=claims.get("role"),
        user_metadata=metadata,
    )


def verify_bearer_token(bearer_token: str) -> AuthenticatedUser:
    """
    Decode a reader's access token.

    Env: SUPABASE_URL (required), SUPABASE_JWT_AUD (default "authenticated").
    Any bad token surfaces as jwt.InvalidTokenError or one of its subclasses
    (expired, wrong issuer, wrong audience, bad signature).
    """
    token = bearer_token.strip()
    if not token:
        raise jwt.InvalidTokenError("empty_token")

    issuer = _project_issuer()
    audience = os.getenv("SUPABASE_JWT_AUD", "").strip() or "authenticated"
    public_key = _key_client_for(issuer).get_signing_key_from_jwt(token).key
    claims = jwt.decode(
        token,
        public_key,
        algorithms=ACCEPTED_ALGORITHMS,
        audience=audience,
        issuer=issuer,
        options={"require": REQUIRED_CLAIMS},
    )
    return user_from_claims(claims)


def extract_bearer_token(authorization_header: str | None) -> str | None:
    scheme, _, token = (authorization_header or "").strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


def get_dev_user() -> AuthenticatedUser | None:
    """
    Local testing only: FLASHCARDS_DEV_USER stands in for a signed-in user
    when no token is sent. Never set it in production.
    """
    dev_user_id = os.getenv("FLASHCARDS_DEV_USER", "").strip()
    if not dev_user_id:
        return None
    return AuthenticatedUser(user_id=dev_user_id, is_dev=True)
