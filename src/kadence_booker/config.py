from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv

from .errors import AuthError


DEFAULT_API_BASE_URL = "https://api.onkadence.co/v1/public"
DEFAULT_AUTH_URL = "https://login.onkadence.co/oauth2/token"
DEFAULT_API_SCOPE = "public"
DEFAULT_FAILURE_LOG = "./kadence-booker-failures.log"
DEFAULT_PROXY_HOST = "127.0.0.1"
DEFAULT_PROXY_PORT = 3000
REQUEST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    auth_url: str
    api_scope: str
    api_token: str | None
    api_key_identifier: str | None
    api_key_secret: str | None
    proxy_host: str
    proxy_port: int
    log_file: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_token) or bool(self.api_key_identifier and self.api_key_secret)

    def require_credentials(self) -> None:
        if not self.has_credentials:
            raise AuthError(
                "Missing Kadence credentials. Set KADENCE_API_TOKEN, or both "
                "KADENCE_API_KEY_IDENTIFIER and KADENCE_API_KEY_SECRET."
            )


def _optional(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings(*, base_url: str | None = None) -> Settings:
    # Values from a local .env file fill in anything the shell has not set.
    load_dotenv()

    api_base_url = (base_url or _optional("KADENCE_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/")
    auth_url = _optional("KADENCE_AUTH_URL") or DEFAULT_AUTH_URL
    api_scope = _optional("KADENCE_API_SCOPE") or DEFAULT_API_SCOPE

    raw_port = _optional("KADENCE_PROXY_PORT")
    try:
        proxy_port = int(raw_port) if raw_port else DEFAULT_PROXY_PORT
    except ValueError:
        raise RuntimeError(f"KADENCE_PROXY_PORT must be an integer, got: {raw_port}") from None

    return Settings(
        api_base_url=api_base_url,
        auth_url=auth_url,
        api_scope=api_scope,
        api_token=_optional("KADENCE_API_TOKEN"),
        api_key_identifier=_optional("KADENCE_API_KEY_IDENTIFIER"),
        api_key_secret=_optional("KADENCE_API_KEY_SECRET"),
        proxy_host=_optional("KADENCE_PROXY_HOST") or DEFAULT_PROXY_HOST,
        proxy_port=proxy_port,
        log_file=_optional("KADENCE_LOG_FILE"),
    )
