from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Callable, Protocol

import httpx

from .config import DEFAULT_API_SCOPE, DEFAULT_AUTH_URL, REQUEST_TIMEOUT_SECONDS, Settings
from .errors import AuthError


logger = logging.getLogger(__name__)

# Tokens this close to expiry are treated as already expired.
REFRESH_MARGIN_SECONDS = 30.0
# Lifetime assumed when the token response carries no usable expires_in.
DEFAULT_TOKEN_LIFETIME_SECONDS = 300.0


class TokenProvider(Protocol):
    def get_access_token(self) -> str: ...


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at - REFRESH_MARGIN_SECONDS


@dataclass(frozen=True)
class StaticTokenProvider:
    token: str

    def get_access_token(self) -> str:
        return self.token


@dataclass
class ClientCredentialsTokenProvider:
    """OAuth2 client-credentials exchange with a per-instance token cache.

    Refresh is single-flight: callers that find the cache stale queue on a lock
    and re-check it once inside, so concurrent workers share one exchange.
    """

    client_id: str
    client_secret: str
    token_url: str = DEFAULT_AUTH_URL
    scope: str = DEFAULT_API_SCOPE
    clock: Callable[[], float] = time.time
    transport: httpx.BaseTransport | None = None

    _token: AccessToken | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def get_access_token(self) -> str:
        token = self._token
        if token is not None and token.is_fresh(self.clock()):
            return token.value

        with self._lock:
            token = self._token
            if token is not None and token.is_fresh(self.clock()):
                return token.value
            self._token = self._exchange()
            return self._token.value

    def _exchange(self) -> AccessToken:
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }
        logger.info("Requesting Kadence access token from %s", self.token_url)
        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS, transport=self.transport) as client:
                resp = client.post(self.token_url, json=payload)
        except httpx.HTTPError as e:
            raise AuthError(f"Token request to {self.token_url} failed: {e}") from e

        try:
            result = resp.json()
        except ValueError:
            result = None

        access_token = result.get("access_token") if isinstance(result, dict) else None
        if resp.is_error or not access_token:
            error = result.get("error") if isinstance(result, dict) else None
            desc = result.get("error_description") if isinstance(result, dict) else None
            detail = " ".join(str(v) for v in (error, desc) if v) or (resp.text or "").strip() or "unknown_error"
            raise AuthError(f"Failed to acquire Kadence token: HTTP {resp.status_code}: {detail}")

        try:
            expires_in = float(result.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0
        if expires_in <= 0:
            logger.warning("Token response has no usable expires_in; assuming %ss", DEFAULT_TOKEN_LIFETIME_SECONDS)
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        return AccessToken(value=str(access_token), expires_at=self.clock() + expires_in)


def token_provider_from_settings(settings: Settings, *, transport: httpx.BaseTransport | None = None) -> TokenProvider:
    """Pick the static token when one is configured, else client credentials."""
    settings.require_credentials()
    if settings.api_token:
        return StaticTokenProvider(settings.api_token)
    return ClientCredentialsTokenProvider(
        client_id=settings.api_key_identifier or "",
        client_secret=settings.api_key_secret or "",
        token_url=settings.auth_url,
        scope=settings.api_scope,
        transport=transport,
    )
