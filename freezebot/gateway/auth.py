"""Credentials for GitHub API calls.

StaticTokenProvider serves one token (PAT or pre-minted app token) for every
installation. InstallationTokenCache signs a GitHub App JWT and exchanges it
for short-lived installation tokens, cached per installation.

Cache access: readers take the cached token without locking when it is
still valid; on a miss or near-expiry the installation's own lock is taken
and the cache re-checked before exchanging, so concurrent callers never
mint two tokens for the same installation.
"""

import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import jwt
import requests
from pydantic import BaseModel

from freezebot.errors import GatewayError

LOG = logging.getLogger("freezebot.gateway.auth")

# Tokens this close to expiry count as expired
EXPIRY_BUFFER = timedelta(minutes=5)
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


class TokenProvider:
    """Returns an API token for an installation."""

    def token_for(self, installation_id: int) -> str:
        raise NotImplementedError("token_for")

    def invalidate(self, installation_id: int) -> None:
        """Drop any cached credential (called after a 401)."""
        return None


class StaticTokenProvider(TokenProvider):
    def __init__(self, token: str) -> None:
        self._token = token

    def token_for(self, installation_id: int) -> str:
        return self._token


class CachedToken(BaseModel):
    """Installation token plus the time it was minted."""

    token: str
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at or (self.created_at + DEFAULT_TOKEN_LIFETIME)
        return now + EXPIRY_BUFFER >= expires_at


class InstallationTokenCache(TokenProvider):
    """GitHub App installation tokens keyed by installation id."""

    def __init__(
        self,
        app_id: int,
        private_key: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._app_id = app_id
        self._private_key = private_key
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._cache: dict[int, CachedToken] = {}
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, installation_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(installation_id, threading.Lock())

    def app_jwt(self) -> str:
        """Short-lived RS256 JWT identifying the app (backdated 60s for clock drift)."""
        issued = int(time.time()) - 60
        payload = {"iat": issued, "exp": issued + 600, "iss": str(self._app_id)}
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def token_for(self, installation_id: int) -> str:
        cached = self._cache.get(installation_id)
        if cached is not None and not cached.is_expired(self._clock()):
            return cached.token

        with self._lock_for(installation_id):
            cached = self._cache.get(installation_id)
            if cached is not None and not cached.is_expired(self._clock()):
                return cached.token
            fresh = self._exchange(installation_id)
            self._cache[installation_id] = fresh
            return fresh.token

    def invalidate(self, installation_id: int) -> None:
        self._cache.pop(installation_id, None)

    def _exchange(self, installation_id: int) -> CachedToken:
        LOG.info("Creating installation token for installation %s", installation_id)
        url = f"{self._api_url}/app/installations/{installation_id}/access_tokens"
        headers = {
            "Authorization": f"Bearer {self.app_jwt()}",
            "Accept": "application/vnd.github+json",
        }
        try:
            resp = self._session.request("POST", url, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise GatewayError(f"Failed to create installation token: {e}") from e
        if resp.status_code >= 400:
            raise GatewayError(
                f"{resp.status_code}: failed to create installation token for {installation_id}",
                status_code=resp.status_code,
            )
        data = resp.json()
        expires_raw = data.get("expires_at")
        return CachedToken(
            token=data["token"],
            created_at=self._clock(),
            expires_at=datetime.fromisoformat(expires_raw.replace("Z", "+00:00")) if expires_raw else None,
        )
