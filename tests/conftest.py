from __future__ import annotations

import json
import logging
import pathlib
import threading
import time
from typing import Any

import httpx
import pytest

from kadence_booker.auth import StaticTokenProvider
from kadence_booker.client import KadenceClient


API_BASE = "https://api.test/v1/public"
TOKEN_URL = "https://login.test/oauth2/token"


def _json(status: int, payload: Any) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode("utf-8"), headers={"Content-Type": "application/ld+json"})


class FakeKadenceApi:
    """In-memory stand-in for the Kadence API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self.users: list[dict[str, Any]] = [
            {"id": "u-1", "email": "ada@example.com", "name": "Ada"},
            {"@id": "/v1/public/users/u-2", "primaryEmail": "Grace@Example.com", "name": "Grace"},
            {"uuid": "u-3", "email": "linus@example.com"},
        ]
        self.buildings: list[dict[str, Any]] = [
            {"@id": "/v1/public/buildings/b-1", "name": "HQ", "timezone": "America/New_York"},
            {"id": "b-2", "name": "London Office", "timeZone": "UTC"},
        ]
        self.building_details: dict[str, dict[str, Any]] = {
            "b-2": {"id": "b-2", "name": "London Office", "timezone": "Europe/London"},
        }
        self.floors: dict[str, list[dict[str, Any]]] = {
            "b-1": [{"id": "f-1", "name": "Level 2"}, {"id": "f-9", "name": "Basement"}],
            "b-2": [{"id": "f-2", "name": "Ground"}],
        }
        self.spaces: dict[str, list[dict[str, Any]]] = {
            "f-1": [
                {"id": "s-1", "name": "Desk 7", "type": "desk"},
                {"id": "s-2", "name": "Focus Room", "type": "room"},
                {"id": "s-3", "displayName": "Desk 8"},
            ],
            "f-2": [{"identifier": "s-4", "name": "Hot Desk 1", "spaceType": "desk"}],
        }
        self.failing: set[tuple[str, str]] = set()
        self.exact_email_filter = False
        self.reject_flat_booking = False
        self.reject_all_bookings = False
        self.bookings: list[dict[str, Any]] = []
        self.token_requests = 0
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    # -- helpers --------------------------------------------------------

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> KadenceClient:
        return KadenceClient(base_url=API_BASE, token_provider=StaticTokenProvider("test-token"), transport=self.transport())

    # -- request handling -----------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self._route(request)
        finally:
            with self._lock:
                self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_URL):
            with self._lock:
                self.token_requests += 1
            return _json(200, {"access_token": f"tok-{self.token_requests}", "expires_in": 3600})

        path = request.url.path.removeprefix("/v1/public")
        params = dict(request.url.params)
        with self._lock:
            self.calls.append((request.method, path, params))

        if (request.method, path) in self.failing:
            return _json(500, {"message": "upstream exploded"})

        parts = [p for p in path.split("/") if p]
        if request.method == "GET":
            if parts == ["users"]:
                wanted = params.get("email", "")
                fold = (lambda v: v) if self.exact_email_filter else str.lower
                users = [u for u in self.users if not wanted or fold(wanted) in {fold(str(u.get("email", ""))), fold(str(u.get("primaryEmail", "")))}]
                return _json(200, {"hydra:member": users})
            if parts == ["buildings"]:
                return _json(200, {"hydra:member": self.buildings})
            if len(parts) == 2 and parts[0] == "buildings":
                detail = self.building_details.get(parts[1])
                return _json(200, detail) if detail else _json(404, {"detail": "Not Found"})
            if parts == ["floors"]:
                return _json(200, {"hydra:member": self.floors.get(params.get("building.id", ""), [])})
            if len(parts) == 3 and parts[0] == "buildings" and parts[2] == "floors":
                return _json(200, self.floors.get(parts[1], []))
            if parts == ["spaces"]:
                return _json(200, {"items": self.spaces.get(params.get("floor.id", ""), [])})
            if len(parts) == 3 and parts[0] == "floors" and parts[2] == "spaces":
                return _json(200, self.spaces.get(parts[1], []))

        if request.method == "POST" and parts == ["bookings"]:
            body = json.loads(request.content or b"{}")
            if self.reject_all_bookings:
                shape = "flat" if "userId" in body else "relation"
                return _json(422, {"detail": f"{shape} payload rejected"})
            if self.reject_flat_booking and "userId" in body:
                return _json(422, {"detail": "userId: This field is not writable."})
            with self._lock:
                booking_id = f"bk-{len(self.bookings) + 1}"
                self.bookings.append(body)
            return _json(201, {"@id": f"/v1/public/bookings/{booking_id}", **body})

        return _json(404, {"detail": f"No route for {request.method} {path}"})


@pytest.fixture()
def api() -> FakeKadenceApi:
    return FakeKadenceApi()


@pytest.fixture()
def kadence_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KADENCE_API_BASE_URL", API_BASE)
    monkeypatch.setenv("KADENCE_API_TOKEN", "test-token")
    monkeypatch.delenv("KADENCE_API_KEY_IDENTIFIER", raising=False)
    monkeypatch.delenv("KADENCE_API_KEY_SECRET", raising=False)


@pytest.fixture()
def write_csv(tmp_path: pathlib.Path):
    def _write(text: str, name: str = "bookings.csv") -> pathlib.Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    httpx_logger = logging.getLogger("httpx")
    handlers, level, httpx_level = list(root.handlers), root.level, httpx_logger.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler) and handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    httpx_logger.setLevel(httpx_level)
