"""JWT verification with dual-mode support (JWKS RS256 + mock HS256).

Tokens are issued elsewhere; this service only verifies them and reads the
``sub``, ``role`` and ``email`` claims.
"""

import time

import httpx
from jose import JWTError, jwt

from traceaid.core.config import settings

ROLE_CLAIM = "role"


class JWKSCache:
    """Key set fetched from ``AUTH_JWKS_URL`` and refreshed after an interval."""

    def __init__(self, url: str, refresh_interval: int):
        self.url = url
        self.refresh_interval = refresh_interval
        self._keys: dict | None = None
        self._fetched_at: float = 0.0

    async def _fetch(self) -> dict:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(self.url)
            resp.raise_for_status()
        self._keys = resp.json()
        self._fetched_at = time.time()
        return self._keys

    async def get(self) -> dict:
        if self._keys is None or (time.time() - self._fetched_at) > self.refresh_interval:
            return await self._fetch()
        return self._keys

    async def key_for(self, kid: str | None) -> dict:
        jwks_data = await self.get()
        for k in jwks_data.get("keys", []):
            if k.get("kid") == kid:
                return k
        raise JWTError("Key not found in JWKS")


jwks_cache = JWKSCache(settings.AUTH_JWKS_URL, settings.JWKS_REFRESH_INTERVAL)


async def decode_access_token(token: str) -> dict:
    """Decode and verify an access token. Returns the claims dict."""
    if settings.AUTH_MOCK:
        return _decode_mock_token(token)
    return await _decode_jwks_token(token)


async def _decode_jwks_token(token: str) -> dict:
    unverified_header = jwt.get_unverified_header(token)
    key = await jwks_cache.key_for(unverified_header.get("kid"))

    options = {"verify_at_hash": False}
    kwargs: dict = {}
    if settings.AUTH_AUDIENCE:
        kwargs["audience"] = settings.AUTH_AUDIENCE
    else:
        options["verify_aud"] = False
    if settings.AUTH_ISSUER:
        kwargs["issuer"] = settings.AUTH_ISSUER

    return jwt.decode(token, key, algorithms=["RS256"], options=options, **kwargs)


def _decode_mock_token(token: str) -> dict:
    """Decode a mock JWT signed with SECRET_KEY (for local dev/testing)."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=["HS256"],
        options={"verify_aud": False, "verify_iss": False},
    )


def create_mock_access_token(
    sub: str,
    role: str,
    email: str = "test@example.com",
    expires_in: int = 900,
) -> str:
    """Create a mock JWT for testing. Only accepted when AUTH_MOCK=true."""
    payload = {
        "sub": sub,
        ROLE_CLAIM: role,
        "email": email,
        "iat": int(time.time()),
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")
