from __future__ import annotations

import json
import socket

import httpx
import pytest
from starlette.testclient import TestClient

from kadence_booker.auth import StaticTokenProvider
from kadence_booker.client import KadenceClient
from kadence_booker.proxy import PROXIED_ROUTES, _bind_first_free, build_app

from .conftest import API_BASE

pytestmark = pytest.mark.proxy


@pytest.fixture()
def upstream() -> list[httpx.Request]:
    return []


@pytest.fixture()
def proxy(upstream: list[httpx.Request]) -> TestClient:
    def handler(request: httpx.Request) -> httpx.Response:
        upstream.append(request)
        if request.url.path.endswith("/missing"):
            return httpx.Response(404, json={"detail": "Not Found"})
        if request.url.path.endswith("/offline"):
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"path": request.url.path, "query": request.url.query.decode()})

    client = KadenceClient(
        base_url=API_BASE,
        token_provider=StaticTokenProvider("server-side-token"),
        transport=httpx.MockTransport(handler),
    )
    return TestClient(build_app(client))


def test_get_is_forwarded_with_query_and_credentials(proxy: TestClient, upstream: list[httpx.Request]) -> None:
    resp = proxy.get("/v1/public/bookings?page=2&order[startDate]=asc")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/ld+json")
    assert resp.json()["path"] == "/v1/public/bookings"
    assert upstream[0].url.params["page"] == "2"
    assert upstream[0].url.params["order[startDate]"] == "asc"
    assert upstream[0].headers["Authorization"] == "Bearer server-side-token"


def test_remote_status_is_passed_through(proxy: TestClient) -> None:
    resp = proxy.get("/v1/public/spaces/missing")

    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not Found"}


def test_check_in_posts_body(proxy: TestClient, upstream: list[httpx.Request]) -> None:
    resp = proxy.post("/v1/public/bookings/bk-1/check-in", json={"method": "web"})

    assert resp.status_code == 200
    assert upstream[0].method == "POST"
    assert upstream[0].url.path == "/v1/public/bookings/bk-1/check-in"
    assert json.loads(upstream[0].content) == {"method": "web"}


def test_check_in_without_body_sends_empty_object(proxy: TestClient, upstream: list[httpx.Request]) -> None:
    proxy.post("/v1/public/bookings/bk-1/check-in")

    assert upstream[0].content == b"{}"
    assert upstream[0].headers["Content-Type"] == "application/ld+json"


def test_upstream_outage_returns_502(proxy: TestClient) -> None:
    resp = proxy.get("/v1/public/users/offline")

    assert resp.status_code == 502
    assert resp.json()["error"] == "upstream_unavailable"


def test_unlisted_routes_are_not_proxied(proxy: TestClient, upstream: list[httpx.Request]) -> None:
    assert proxy.delete("/v1/public/bookings/bk-1").status_code == 405
    assert proxy.get("/v1/public/admin").status_code == 404
    assert upstream == []


def test_every_read_route_is_reachable(proxy: TestClient) -> None:
    for method, path in PROXIED_ROUTES:
        if method != "GET":
            continue
        url = "/v1/public" + path.replace("{", "").replace("}", "")
        assert proxy.get(url).status_code == 200, url


def test_bind_skips_ports_in_use() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen()
        busy = taken.getsockname()[1]

        sock = _bind_first_free("127.0.0.1", busy)
        try:
            assert sock.getsockname()[1] > busy
        finally:
            sock.close()
