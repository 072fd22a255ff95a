"""HTTP runtime serving the embedded frontend bundle.

Startup order: settings and logging, resource table, application,
listener bind, then the uvicorn serve loop. A bind failure or a serve loop
that dies ends the process with exit status 1.
"""

import contextlib
import logging
import signal
import socket
import sys
import threading
import time
import zipfile
from typing import Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError

from web_server import __version__
from web_server.config import configure_logging, load_settings
from web_server.resources import ResourceTable

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("web_server.access")

LISTEN_BACKLOG = 2048


def _etag_matches(header: str, etag: str) -> bool:
    tags = [t.strip() for t in header.split(",")]
    return "*" in tags or any(t.removeprefix("W/") == etag for t in tags)


def create_app(table: ResourceTable) -> FastAPI:
    """Build the application around an already-loaded resource table."""
    app = FastAPI(
        title="web_server",
        version=__version__,
        # Every path belongs to the bundle
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.resources = table

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        client = request.client.host if request.client else "-"
        access_logger.info(
            f'{client} "{request.method} {request.url.path}" '
            f"{response.status_code} {elapsed_ms:.3f}ms"
        )
        return response

    @app.api_route("/{full_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
    async def serve_resource(request: Request, full_path: str):
        entry = table.resolve(full_path)
        if entry is None:
            return PlainTextResponse("Not Found", status_code=404)
        headers = {"ETag": entry.etag}
        if_none_match = request.headers.get("if-none-match")
        if if_none_match and _etag_matches(if_none_match, entry.etag):
            return Response(status_code=304, headers=headers)
        return Response(content=entry.content, media_type=entry.content_type, headers=headers)

    return app


# ── Listener ─────────────────────────────────────────────────────────────────

def parse_listen_address(listen: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port = listen.strip().rpartition(":")
    if not sep or not port.isdigit() or int(port) > 65535:
        raise ValueError(f"invalid listen address {listen!r}, expected host:port")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def format_address(sockname) -> str:
    host, port = sockname[0], sockname[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def open_listener(listen: str) -> socket.socket:
    """Bind and listen on ``listen``; exit the process if that is impossible."""
    try:
        host, port = parse_listen_address(listen)
        family, type_, proto, _, sockaddr = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM
        )[0]
        sock = socket.socket(family, type_, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(LISTEN_BACKLOG)
        except OSError:
            sock.close()
            raise
    except (OSError, ValueError) as e:
        logger.error(f"Failed to bind to {listen}: {e}")
        sys.exit(1)

    logger.info(f"listening on {format_address(sock.getsockname())}")
    return sock


# ── Serve loop ───────────────────────────────────────────────────────────────

@contextlib.contextmanager
def _shutdown_signals(server: uvicorn.Server):
    """Turn SIGINT/SIGTERM into a graceful stop while ``server.run`` is active.

    uvicorn re-raises the signal it caught once shutdown completes; with this
    handler installed that ends in a normal return instead of death by signal.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handle(signum, frame):
        server.should_exit = True

    previous = {sig: signal.signal(sig, handle) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def serve(app: FastAPI, sock: socket.socket, log_level: int = logging.INFO) -> None:
    config = uvicorn.Config(
        app,
        log_config=None,
        log_level=log_level,
        access_log=False,
        lifespan="off",
    )
    server = uvicorn.Server(config)
    try:
        with _shutdown_signals(server):
            server.run(sockets=[sock])
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        sock.close()

    if not server.started:
        logger.error("Server error: server stopped before it finished starting")
        sys.exit(1)
    logger.info("Server stopped")


def main() -> None:
    try:
        settings = load_settings()
    except ValidationError as e:
        configure_logging(logging.INFO)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    configure_logging(settings.log_level)
    listen = settings.LISTEN

    try:
        table = ResourceTable.load_embedded()
    except (OSError, zipfile.BadZipFile) as e:
        logger.error(f"Failed to load embedded resources: {e}")
        sys.exit(1)
    logger.debug(f"Loaded {len(table)} embedded resources")

    app = create_app(table)
    sock = open_listener(listen)
    serve(app, sock, settings.log_level)


if __name__ == "__main__":
    main()
