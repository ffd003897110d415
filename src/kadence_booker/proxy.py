"""`kadence-proxy`: forwards browser requests to the Kadence public API.

The browser demos call these routes instead of the API so the key and secret
stay on the server. Routes mirror the public API one to one; query strings are
passed through untouched and the remote status and body are returned as-is.
"""
from __future__ import annotations

import logging
import socket
import sys

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .auth import token_provider_from_settings
from .client import KadenceClient
from .config import load_settings
from .errors import AuthError, KadenceError
from .logging_setup import configure_logging


logger = logging.getLogger(__name__)

API_PREFIX = "/v1/public"

PROXIED_ROUTES: tuple[tuple[str, str], ...] = (
    ("GET", "/bookings"),
    ("GET", "/bookings/{booking_id}"),
    ("POST", "/bookings/{booking_id}/check-in"),
    ("GET", "/users"),
    ("GET", "/users/{user_id}"),
    ("GET", "/users/{user_id}/bookings"),
    ("GET", "/buildings"),
    ("GET", "/buildings/{building_id}"),
    ("GET", "/floors"),
    ("GET", "/floors/{floor_id}"),
    ("GET", "/neighborhoods"),
    ("GET", "/neighborhoods/{neighborhood_id}"),
    ("GET", "/spaces"),
    ("GET", "/spaces/{space_id}"),
)


def build_app(client: KadenceClient) -> Starlette:
    async def relay(request: Request) -> Response:
        path = request.url.path[len(API_PREFIX):]
        body: bytes | None = None
        if request.method == "POST":
            body = await request.body() or b"{}"
        try:
            forwarded = await run_in_threadpool(
                client.forward,
                request.method,
                path,
                query_string=request.url.query,
                body=body,
                content_type=request.headers.get("content-type"),
            )
        except (KadenceError, OSError) as e:
            logger.warning("Proxy %s %s failed: %s", request.method, path, e)
            return JSONResponse({"error": "upstream_unavailable", "detail": str(e)}, status_code=502)
        except Exception as e:
            logger.exception("Unhandled error while proxying %s %s", request.method, path)
            return JSONResponse({"error": "proxy_error", "detail": str(e)}, status_code=502)
        return Response(forwarded.content, status_code=forwarded.status_code, media_type="application/ld+json")

    routes = [Route(API_PREFIX + path, relay, methods=[method]) for method, path in PROXIED_ROUTES]
    return Starlette(routes=routes)


def _bind_first_free(host: str, start: int, attempts: int = 20) -> socket.socket:
    # Walk up from the preferred port until one binds; the bound socket is
    # handed to uvicorn so the port cannot be taken in between.
    for port in range(start, start + attempts):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            logger.info("Port %s is in use, trying %s", port, port + 1)
            continue
        return sock
    raise RuntimeError(f"No free port in {start}-{start + attempts - 1} on {host}")


def main() -> None:
    settings = load_settings()
    configure_logging(level="INFO", log_file=settings.log_file)
    try:
        token_provider = token_provider_from_settings(settings)
    except AuthError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(1) from e

    client = KadenceClient(base_url=settings.api_base_url, token_provider=token_provider)
    app = build_app(client)
    sock = _bind_first_free(settings.proxy_host, settings.proxy_port)
    port = sock.getsockname()[1]
    print(f"Kadence - Public API Examples - Running on port {port}\nhttp://{settings.proxy_host}:{port}")
    server = uvicorn.Server(uvicorn.Config(app, host=settings.proxy_host, port=port, log_level="info"))
    server.run(sockets=[sock])


if __name__ == "__main__":
    main()
