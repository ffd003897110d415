from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any, Mapping

import httpx

from .auth import TokenProvider
from .config import REQUEST_TIMEOUT_SECONDS
from .errors import RemoteRequestError


logger = logging.getLogger(__name__)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return str(detail)
    return json.dumps(body, ensure_ascii=False)


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


@dataclass(frozen=True)
class ForwardedResponse:
    status_code: int
    content: bytes
    content_type: str


@dataclass
class KadenceClient:
    base_url: str
    token_provider: TokenProvider
    transport: httpx.BaseTransport | None = None

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS, transport=self.transport)

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        token = self.token_provider.get_access_token()
        headers: dict[str, str] = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json, application/ld+json",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._url(path)
        try:
            with self._client() as client:
                resp = client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteRequestError(f"Kadence {method} {url} failed: {e}") from e
        if resp.is_error:
            detail = _error_detail(resp)
            logger.debug("Kadence %s %s -> HTTP %s: %s", method, url, resp.status_code, detail[:800])
            raise RemoteRequestError(
                f"HTTP {resp.status_code}: {detail}",
                status_code=resp.status_code,
                detail=detail,
            )
        return resp

    def get(self, path: str, query: Mapping[str, Any] | None = None) -> Any:
        resp = self._send("GET", path, params=dict(query or {}), headers=self._headers())
        return _decode(resp)

    def post(self, path: str, body: Mapping[str, Any]) -> Any:
        resp = self._send("POST", path, json=dict(body), headers=self._headers(json_body=True))
        return _decode(resp)

    def forward(
        self,
        method: str,
        path: str,
        *,
        query_string: str = "",
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> ForwardedResponse:
        """Relay a request without raising on non-2xx (used by the proxy)."""
        url = self._url(path)
        if query_string:
            url = f"{url}?{query_string}"
        headers = self._headers()
        if body is not None:
            headers["Content-Type"] = content_type or "application/ld+json"
        logger.info("Forwarding %s %s", method, url)
        try:
            with self._client() as client:
                resp = client.request(method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            raise RemoteRequestError(f"Kadence {method} {url} failed: {e}") from e
        return ForwardedResponse(
            status_code=resp.status_code,
            content=resp.content,
            content_type=resp.headers.get("Content-Type", "application/ld+json"),
        )
