from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

ISSUER = "https://team.access.example"
AUDIENCE = "fieldcopilot-aud"
JWKS_URL = "https://team.access.example/cdn-cgi/access/certs"


def generate_jwks(kid: str = "test-kid") -> tuple[Any, dict[str, Any]]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk["kid"] = kid
    jwk["alg"] = "RS256"
    return private_key, {"keys": [jwk]}


def make_token(
    private_key: Any,
    *,
    subject: str | None = "user-sub-1",
    issuer: str = ISSUER,
    audience: str = AUDIENCE,
    kid: str = "test-kid",
    expires_in: timedelta = timedelta(minutes=5),
    extra: dict[str, Any] | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "iss": issuer,
        "aud": audience,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if subject is not None:
        claims["sub"] = subject
    claims.update(extra or {})
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


def static_fetcher(jwks: dict[str, Any]):
    calls: list[str] = []

    async def _fetch(url: str) -> dict[str, Any]:
        calls.append(url)
        return jwks

    _fetch.calls = calls  # type: ignore[attr-defined]
    return _fetch
