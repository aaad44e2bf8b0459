from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable

import httpx
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import AccessAuthError
from fieldcopilot.persistence.repos.access_identities import ResolvedIdentity, resolve_identity


logger = logging.getLogger(__name__)

_ALLOWED_ALGS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}

JwksFetcher = Callable[[str], Awaitable[dict[str, Any]]]


async def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    # Fetch JWKS from the gateway for signature verification.
    settings = get_settings()
    timeout = settings.ext_call_timeout_ms / 1000
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(jwks_url)
    response.raise_for_status()
    return response.json()


class JwksCache:
    """Key sets by URL; ttl_s of 0 keeps them for the process lifetime."""

    def __init__(self, ttl_s: int = 0, fetcher: JwksFetcher | None = None) -> None:
        self._ttl_s = ttl_s
        self._fetcher = fetcher or _fetch_jwks
        self._entries: dict[str, tuple[float | None, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, url: str, *, refresh: bool = False) -> dict[str, Any]:
        async with self._lock:
            entry = self._entries.get(url)
            if entry is not None and not refresh:
                expires_at, jwks = entry
                if expires_at is None or expires_at > time.monotonic():
                    return jwks
            jwks = await self._fetcher(url)
            expires_at = time.monotonic() + self._ttl_s if self._ttl_s > 0 else None
            self._entries[url] = (expires_at, jwks)
            return jwks

    def clear(self) -> None:
        self._entries.clear()


def _select_jwk(jwks: dict[str, Any], kid: str | None) -> dict[str, Any] | None:
    # Select the appropriate JWK based on kid header.
    keys = jwks.get("keys") or []
    if kid:
        for key in keys:
            if key.get("kid") == kid:
                return key
    if len(keys) == 1:
        return keys[0]
    return None


def _jwk_to_key(jwk: dict[str, Any], alg: str) -> Any:
    # Convert a JWK payload into a cryptography key for PyJWT.
    payload = json.dumps(jwk)
    if alg.startswith("RS"):
        return jwt.algorithms.RSAAlgorithm.from_jwk(payload)
    if alg.startswith("ES"):
        return jwt.algorithms.ECAlgorithm.from_jwk(payload)
    raise AccessAuthError("Invalid access token", 401)


async def verify_access_token(
    token: str,
    *,
    jwks_url: str,
    audience: str,
    issuer: str | None,
    jwks_cache: JwksCache,
) -> dict[str, Any]:
    try:
        header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as exc:
        raise AccessAuthError("Invalid access token", 401) from exc
    alg = header.get("alg")
    if not alg or alg not in _ALLOWED_ALGS:
        raise AccessAuthError("Invalid access token", 401)

    try:
        jwks = await jwks_cache.get(jwks_url)
        jwk = _select_jwk(jwks, header.get("kid"))
        if jwk is None:
            # Gateways rotate signing keys; refetch once for an unknown kid.
            jwks = await jwks_cache.get(jwks_url, refresh=True)
            jwk = _select_jwk(jwks, header.get("kid"))
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("access_jwks_fetch_failed error=%s", type(exc).__name__)
        raise AccessAuthError("Invalid access token", 401) from exc
    if jwk is None:
        raise AccessAuthError("Invalid access token", 401)

    options: dict[str, Any] = {}
    if not issuer:
        options["verify_iss"] = False
    try:
        return jwt.decode(
            token,
            _jwk_to_key(jwk, alg),
            algorithms=[alg],
            audience=audience,
            issuer=issuer or None,
            options=options,
        )
    except jwt.PyJWTError as exc:
        logger.info("access_token_rejected reason=%s", type(exc).__name__)
        raise AccessAuthError("Invalid access token", 401) from exc


async def authenticate_access_token(
    session: AsyncSession,
    *,
    token: str | None,
    jwks_url: str | None,
    audience: str | None,
    issuer: str | None,
    jwks_cache: JwksCache,
) -> ResolvedIdentity:
    """Verify a gateway assertion and map (issuer, subject) onto a tenant user."""
    if not token:
        raise AccessAuthError("Missing access token", 401)
    if not jwks_url or not audience:
        raise AccessAuthError("Access auth is not configured", 500)

    claims = await verify_access_token(
        token, jwks_url=jwks_url, audience=audience, issuer=issuer, jwks_cache=jwks_cache
    )
    # Service tokens carry common_name instead of sub.
    subject = claims.get("sub") or claims.get("common_name") or ""
    token_issuer = claims.get("iss") or ""
    if not token_issuer or not subject:
        raise AccessAuthError("Invalid access token", 401)

    identity = await resolve_identity(session, str(token_issuer), str(subject))
    if identity is None:
        raise AccessAuthError("Access identity not mapped", 403)
    return identity
